"""Dominant-colour palettes and palette-derived brand colour sets."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Union

from colorthief import ColorThief

from config.settings import cfg
from imaging import colors as C
from utils.log_config import get_logger

log = get_logger(__name__)

HARMONY_MODES = ("brand", "auto-analogous", "auto-complementary", "auto-soft")


def extract_palette(image: Union[str, Path], n: Optional[int] = None) -> List[str]:
    """
    Up to *n* dominant colours (default ``colorfit.palette_size``) as hex,
    most dominant first; ``[]`` on failure.
    """
    n = n or cfg.colorfit.palette_size
    try:
        pal = ColorThief(str(image)).get_palette(color_count=max(2, n), quality=1)
    except Exception as exc:
        log.warning("Palette extraction failed for %s: %s", image, exc)
        return []
    return [C.rgb_to_hex(rgb) for rgb in pal[:n]]


def pick_harmonious_colors(
    image: Union[str, Path],
    profile_primary: str,
    mode: str = "brand",
) -> Dict[str, str]:
    """Derive ``{primary, secondary, accent, text}`` from the image palette."""
    if mode not in HARMONY_MODES:
        raise ValueError(f"Unknown harmony mode: {mode}")

    pal = extract_palette(image)
    base = pal[0] if pal else profile_primary

    if mode == "brand":
        primary = C.mix(profile_primary, pal[1] if len(pal) > 1 else base, 20)
        secondary = C.desaturate(C.lighten(primary, 22), 10)
        accent = C.lighten(C.saturate(C.complement(profile_primary), 18), 6)
    elif mode == "auto-analogous":
        an = C.analogous(base)
        primary = C.lighten(an[0], 8)
        secondary = C.desaturate(C.lighten(an[1], 18), 10)
        accent = C.lighten(C.saturate(an[2], 12), 4)
    elif mode == "auto-complementary":
        primary = C.lighten(base, 6)
        secondary = C.lighten(C.desaturate(primary, 12), 16)
        accent = C.lighten(C.saturate(C.complement(base), 18), 6)
    else:
        primary = C.lighten(C.desaturate(base, 20), 12)
        secondary = C.lighten(primary, 16)
        accent = C.lighten(C.saturate(primary, 12), 6)

    colors = {
        "primary": primary,
        "secondary": secondary,
        "accent": accent,
        "text": C.best_text_on(primary),
    }
    log.info("Palette [%s] from %s → %s", mode, Path(image).name, colors)
    return colors
