"""
Brand profile: palette, font, tone, margins and the two learned
multipliers (font scale, saturation).  Stored as camelCase JSON.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from config.settings import cfg
from imaging import colors as C
from storage.store import DocumentStore
from utils.exceptions import ProfileError, StoreError
from utils.log_config import get_logger

log = get_logger(__name__)

NAMESPACE = "profiles"

FONT_SCALE_RANGE = (0.7, 1.5)
SATURATION_RANGE = (0.6, 1.4)
SAFE_MARGIN_RANGE = (16, 120)


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Tone(str, Enum):
    ENERGETIC   = "energetic"
    ELEGANT     = "elegant"
    TRUSTWORTHY = "trustworthy"
    PLAYFUL     = "playful"


LEGACY_TONES = {
    "元気": Tone.ENERGETIC,
    "上品": Tone.ELEGANT,
    "信頼": Tone.TRUSTWORTHY,
    "ポップ": Tone.PLAYFUL,
}


class LayoutDensity(str, Enum):
    COMPACT = "compact"
    NORMAL  = "normal"
    AIRY    = "airy"


class BrandColors(_Model):
    primary:   str
    secondary: Optional[str] = None
    accent:    Optional[str] = None
    text:      Optional[str] = None

    @field_validator("primary", "secondary", "accent", "text")
    @classmethod
    def _hex(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not C.is_hex(value):
            raise ValueError(f"invalid hex colour: {value!r}")
        return value

    def as_map(self) -> Dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v}


class FontSpec(_Model):
    family: str = "Noto Sans JP"
    path:   Optional[str] = None


class ContentRules(_Model):
    show_price:    bool = True
    show_discount: bool = True
    show_badge:    bool = False


class BrandProfile(_Model):
    brand_name:     str
    colors:         BrandColors
    font:           FontSpec        = Field(default_factory=FontSpec)
    tone:           Tone            = Tone.ENERGETIC
    layout_density: LayoutDensity   = LayoutDensity.NORMAL
    safe_margin:    int             = Field(cfg.render.default_safe_margin, ge=0, le=400)
    font_scale:     float           = Field(1.0, ge=FONT_SCALE_RANGE[0], le=FONT_SCALE_RANGE[1])
    saturation:     float           = Field(1.0, ge=SATURATION_RANGE[0], le=SATURATION_RANGE[1])
    rules:          ContentRules    = Field(default_factory=ContentRules)
    template_init:  Dict[str, float] = Field(default_factory=dict)

    @field_validator("tone", mode="before")
    @classmethod
    def _legacy_tone(cls, value: Any) -> Any:
        return LEGACY_TONES.get(value, value)

    @field_validator("font_scale", "saturation", mode="before")
    @classmethod
    def _null_is_default(cls, value: Any) -> Any:
        return 1.0 if value is None else value

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def parse_profile(data: Dict[str, Any]) -> BrandProfile:
    try:
        return BrandProfile.model_validate(data)
    except ValidationError as exc:
        raise ProfileError(f"Invalid brand profile: {exc}") from exc


def load_profile(path: Union[str, Path]) -> BrandProfile:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ProfileError(f"Cannot read profile {path}: {exc}") from exc
    return parse_profile(data)


def save_profile(profile: BrandProfile, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(profile.to_json(), ensure_ascii=False, indent=2), encoding="utf-8")
    return path


# ── feedback tags ───────────────────────────────────────────
class FeedbackTag(str, Enum):
    LARGER_TEXT    = "larger_text"
    SMALLER_TEXT   = "smaller_text"
    ELEGANT        = "elegant"
    STAND_OUT      = "stand_out"
    WIDER_MARGIN   = "wider_margin"
    TIGHTER_MARGIN = "tighter_margin"


LEGACY_TAGS = {
    "文字大きめ": FeedbackTag.LARGER_TEXT,
    "文字小さめ": FeedbackTag.SMALLER_TEXT,
    "上品に":     FeedbackTag.ELEGANT,
    "目立たせる": FeedbackTag.STAND_OUT,
    "余白広め":   FeedbackTag.WIDER_MARGIN,
    "余白詰める": FeedbackTag.TIGHTER_MARGIN,
}


def parse_tag(value: Union[str, FeedbackTag]) -> FeedbackTag:
    if isinstance(value, FeedbackTag):
        return value
    if value in LEGACY_TAGS:
        return LEGACY_TAGS[value]
    try:
        return FeedbackTag(value.replace("-", "_"))
    except ValueError:
        choices = ", ".join([t.value for t in FeedbackTag] + list(LEGACY_TAGS))
        raise ProfileError(f"Unknown feedback tag {value!r} (choose from {choices})") from None


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def apply_feedback(profile: BrandProfile, tag: Union[str, FeedbackTag]) -> BrandProfile:
    """Return a copy nudged by one feedback tag; values stay in range."""
    tag = parse_tag(tag)
    fs, sat, margin = profile.font_scale, profile.saturation, profile.safe_margin

    if tag is FeedbackTag.LARGER_TEXT:
        fs = _clamp(round(fs + 0.05, 4), *FONT_SCALE_RANGE)
    elif tag is FeedbackTag.SMALLER_TEXT:
        fs = _clamp(round(fs - 0.05, 4), *FONT_SCALE_RANGE)
    elif tag is FeedbackTag.ELEGANT:
        sat = _clamp(round(sat - 0.1, 4), *SATURATION_RANGE)
    elif tag is FeedbackTag.STAND_OUT:
        sat = _clamp(round(sat + 0.1, 4), *SATURATION_RANGE)
    elif tag is FeedbackTag.WIDER_MARGIN:
        margin = int(min(margin + 8, SAFE_MARGIN_RANGE[1]))
    elif tag is FeedbackTag.TIGHTER_MARGIN:
        margin = int(max(margin - 8, SAFE_MARGIN_RANGE[0]))

    log.info("Feedback %s → font_scale=%.2f saturation=%.2f safe_margin=%d",
             tag.value, fs, sat, margin)
    return profile.model_copy(update={"font_scale": fs, "saturation": sat, "safe_margin": margin})


# ── onboarding ──────────────────────────────────────────────
def default_profile(brand_name: str = "新規店舗") -> BrandProfile:
    return BrandProfile(
        brand_name=brand_name,
        colors=BrandColors(primary="#D92C2C", secondary="#FFE8E8", accent="#FFD93D", text="#111111"),
        safe_margin=48,
        rules=ContentRules(show_price=True, show_discount=True, show_badge=True),
    )


def init_profile_from_logo(logo: Union[str, Path], brand_name: str = "新規店舗") -> BrandProfile:
    """Seed a profile from the logo's dominant colour; defaults when that fails."""
    from imaging.palette import extract_palette

    palette = extract_palette(logo, 5)
    if not palette:
        log.warning("No palette from %s, using default profile", logo)
        return default_profile(brand_name)

    primary = palette[0]
    text = C.BLACK if C.contrast_ratio(primary, C.BLACK) >= 4.5 else C.WHITE
    return BrandProfile(
        brand_name=brand_name,
        colors=BrandColors(
            primary=primary,
            secondary=C.lighten(primary, 30),
            accent="#FFD93D",
            text=text,
        ),
        safe_margin=48,
        rules=ContentRules(show_price=True, show_discount=True, show_badge=True),
    )


class ProfileRepository:
    """Brand profiles stored per tenant in the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def get(self, tenant: str) -> Optional[BrandProfile]:
        doc = self.store.get(NAMESPACE, tenant)
        return parse_profile(doc.data) if doc.exists else None

    def require(self, tenant: str) -> BrandProfile:
        profile = self.get(tenant)
        if profile is None:
            raise ProfileError(f"No brand profile for tenant {tenant!r}")
        return profile

    def save(self, tenant: str, profile: BrandProfile) -> None:
        self.store.update(NAMESPACE, tenant, lambda _: profile.to_json())

    def apply_feedback(self, tenant: str, tag: Union[str, FeedbackTag]) -> BrandProfile:
        tag = parse_tag(tag)

        def _apply(current):
            if current is None:
                raise ProfileError(f"No brand profile for tenant {tenant!r}")
            return apply_feedback(parse_profile(current), tag).to_json()

        try:
            return parse_profile(self.store.update(NAMESPACE, tenant, _apply))
        except StoreError as exc:
            raise ProfileError(f"Cannot update profile for {tenant!r}: {exc}") from exc
