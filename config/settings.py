"""
All configuration — flags, knobs, heuristic thresholds.
Edit THIS file (or the matching env vars) to change any behaviour.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Tuple

from utils.exceptions import ConfigurationError

ROOT_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT_DIR / "data"

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  FLAGS — toggle without touching other files
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

VERBOSE_LOGGING   = os.getenv("BANNERGEN_VERBOSE", "0") == "1"
BG_REMOVAL_MODE   = os.getenv("REMBG_MODE", "none")      # none | cli | http | rembg
BG_REMOVAL_URL    = os.getenv("REMBG_URL", "")
AB_HALF_LIFE_DAYS = float(os.getenv("AB_HALFLIFE_DAYS", "30"))
REFINE_EDGES      = True
ENABLE_COLOR_FIT  = True

BG_MODES = ("none", "cli", "http", "rembg")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  DATACLASS CONFIGS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class PathConfig:
    root:          Path = DATA_DIR
    store_db:      Path = DATA_DIR / "stores" / "state.db"
    output_dir:    Path = DATA_DIR / "out"
    colorfit_dir:  Path = DATA_DIR / "cache" / "colorfit"
    uploads_dir:   Path = DATA_DIR / "uploads"
    fonts_dir:     Path = DATA_DIR / "fonts"
    asset_library: Path = DATA_DIR / "library" / "index.json"
    log_file:      Path = DATA_DIR / "logs" / "bannergen.log"

    @classmethod
    def under(cls, root: Path) -> "PathConfig":
        """Same layout rooted somewhere else (tests, ``--data-dir``)."""
        root = Path(root)
        return cls(
            root=root,
            store_db=root / "stores" / "state.db",
            output_dir=root / "out",
            colorfit_dir=root / "cache" / "colorfit",
            uploads_dir=root / "uploads",
            fonts_dir=root / "fonts",
            asset_library=root / "library" / "index.json",
            log_file=root / "logs" / "bannergen.log",
        )

    def ensure(self) -> None:
        for d in (
            self.store_db.parent, self.output_dir, self.colorfit_dir,
            self.uploads_dir, self.fonts_dir, self.log_file.parent,
        ):
            d.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class RenderConfig:
    min_contrast:        float = 4.5
    line_height:         float = 1.2
    char_width_ratio:    float = 0.6     # avg glyph width / font size
    dark_brightness:     float = 30.0    # primary below this gets lightened
    lighten_delta:       float = 10.0    # HSL percent
    default_safe_margin: int   = 36
    saturation_gain:     float = 50.0    # (scale - 1) * gain → HSL percent
    notes_font_ratio:    float = 0.028
    notes_opacity:       float = 0.8
    notes_separator:     str   = "／"
    badge_radius_ratio:  float = 0.25
    badge_font_ratio:    float = 0.5
    bold_weight:         int   = 800
    default_size:        Tuple[int, int] = (1080, 1080)


@dataclass(frozen=True)
class FontConfig:
    family:    str = "Noto Sans CJK JP"
    fallbacks: Tuple[str, ...] = (
        "Noto Sans JP", "Hiragino Sans", "Yu Gothic", "Meiryo",
        "MS Gothic", "Arial Unicode MS", "DejaVu Sans",
    )


@dataclass(frozen=True)
class TextShapingConfig:
    max_chars:          int   = 24
    max_lines:          int   = 2
    prefer_break:       Tuple[str, ...] = ("、", "・", "／", "/", "｜", "|", "-", " ")
    prefer_break_score: float = 10.0
    clean_start_score:  float = 5.0      # next char may start a line
    clean_end_score:    float = 3.0      # current char may end a line
    middle_score:       float = 2.0
    middle_window:      Tuple[float, float] = (0.3, 0.7)
    scan_start_ratio:   float = 0.3
    min_word_len:       int   = 2
    max_word_len:       int   = 12


@dataclass(frozen=True)
class LayoutConfig:
    multiline_shrink:   float = 0.92
    push_down_ratio:    float = 0.28
    bottom_margin_mult: float = 1.5
    short_title_chars:  int   = 10
    short_title_grow:   float = 1.06
    portrait_ratio:     float = 0.9
    landscape_ratio:    float = 1.3
    portrait_grow_h:    float = 1.08
    portrait_shrink_w:  float = 0.95
    landscape_shrink_h: float = 0.92
    min_image_side:     float = 80.0


@dataclass(frozen=True)
class ColorFitConfig:
    enabled:              bool  = ENABLE_COLOR_FIT
    default_brand:        str   = "#D92C2C"
    max_hue_shift:        float = 24.0
    brand_saturation:     float = 0.05
    pop_saturation:       float = 1.15
    pop_brightness:       float = 1.03
    soft_saturation:      float = 0.88
    palette_size:         int   = 6


@dataclass(frozen=True)
class BackgroundRemovalConfig:
    mode:           str   = BG_REMOVAL_MODE
    cli_command:    str   = "rembg"
    http_url:       str   = BG_REMOVAL_URL
    timeout:        float = 60.0
    refine_edges:   bool  = REFINE_EDGES
    hair_variation: int   = 100
    hair_min_alpha: int   = 50
    hair_boost:     float = 1.3
    noise_alpha:    int   = 50
    noise_avg:      int   = 30
    noise_diff:     int   = 20
    smooth_weight:  float = 0.9


@dataclass(frozen=True)
class BanditConfig:
    epsilon:         float = 0.2
    half_life_days:  float = AB_HALF_LIFE_DAYS
    min_decay_days:  float = 0.5
    tie_break:       str   = "fewest_plays"   # fewest_plays | none
    default_n:       int   = 3
    templates:       Tuple[str, ...] = (
        "product-hero", "basic-sale", "rank-award",
        "limited-time", "price-push", "variant-grid",
    )


@dataclass(frozen=True)
class TermsConfig:
    min_count:         int   = 3
    keep_max_removed:  float = 0.3
    drop_min_removed:  float = 0.7
    suggest_limit:     int   = 20
    few_shot_k:        int   = 4


@dataclass(frozen=True)
class StoreConfig:
    cas_attempts: int   = 5
    cas_backoff:  float = 0.01
    busy_timeout: int   = 10000   # ms


@dataclass
class AppConfig:
    paths:    PathConfig              = field(default_factory=PathConfig)
    render:   RenderConfig            = field(default_factory=RenderConfig)
    fonts:    FontConfig              = field(default_factory=FontConfig)
    text:     TextShapingConfig       = field(default_factory=TextShapingConfig)
    layout:   LayoutConfig            = field(default_factory=LayoutConfig)
    colorfit: ColorFitConfig          = field(default_factory=ColorFitConfig)
    bg:       BackgroundRemovalConfig = field(default_factory=BackgroundRemovalConfig)
    bandit:   BanditConfig            = field(default_factory=BanditConfig)
    terms:    TermsConfig             = field(default_factory=TermsConfig)
    store:    StoreConfig             = field(default_factory=StoreConfig)

    verbose:  bool = VERBOSE_LOGGING

    def validate(self) -> None:
        if not 0.0 <= self.bandit.epsilon <= 1.0:
            raise ConfigurationError("bandit.epsilon must be within [0, 1]")
        if self.bandit.half_life_days < 0:
            raise ConfigurationError("bandit.half_life_days must be >= 0")
        if self.bandit.tie_break not in ("fewest_plays", "none"):
            raise ConfigurationError(f"Unknown tie-break: {self.bandit.tie_break}")
        if self.bg.mode not in BG_MODES:
            raise ConfigurationError(f"Unknown background removal mode: {self.bg.mode}")
        if self.bg.mode == "http" and not self.bg.http_url:
            raise ConfigurationError("REMBG_URL is required for http mode")
        if self.text.max_chars < 1 or self.text.max_lines < 1:
            raise ConfigurationError("text.max_chars and text.max_lines must be >= 1")
        if self.store.cas_attempts < 1:
            raise ConfigurationError("store.cas_attempts must be >= 1")


cfg = AppConfig()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  SHARED CONSTANTS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

# Marketplace canvas presets: (width, height), safe margin
SIZE_PRESETS: Dict[str, Tuple[Tuple[int, int], int]] = {
    "r10_product": ((1200, 1200), 48),
    "r10_wide":    ((1200,  630), 40),
    "yss_banner":  ((1200,  628), 40),
    "square1080":  ((1080, 1080), 48),
}

# Used when a profile leaves a palette slot empty
DEFAULT_COLORS: Dict[str, str] = {
    "secondary": "#ffffff",
    "accent":    "#FFD93D",
    "text":      "#111111",
}


def parse_size(spec: str) -> Tuple[int, int]:
    """``"1200x628"`` → ``(1200, 628)``."""
    try:
        w, h = (int(v) for v in spec.lower().split("x", 1))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid size: {spec!r}") from exc
    if w <= 0 or h <= 0:
        raise ConfigurationError(f"Invalid size: {spec!r}")
    return w, h
