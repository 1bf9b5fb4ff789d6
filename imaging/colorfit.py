"""
Colour-fit a product image to the brand: hue rotation toward the brand
colour (``brand-align``), a saturation boost (``pop``) or a gentle
desaturation (``soft``).  Results are cached on disk by input hash.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image

from config.settings import ColorFitConfig, cfg
from imaging import colors as C
from imaging.palette import extract_palette
from utils.log_config import get_logger

log = get_logger(__name__)

MODES = ("brand-align", "pop", "soft")


def cache_key(src: Union[str, Path], brand_hex: str, mode: str, strength: float) -> str:
    raw = "|".join([str(src), brand_hex, mode, f"{strength:g}"])
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:12]


def dominant_hue(src: Union[str, Path]) -> float:
    pal = extract_palette(src, 5)
    return C.to_hsl(pal[0])[0] if pal else 0.0


def hue_delta(src_hue: float, brand_hue: float, max_shift: float, strength: float) -> float:
    """Shortest signed rotation from *src_hue* to *brand_hue*, clamped."""
    delta = ((brand_hue - src_hue + 540.0) % 360.0) - 180.0
    return max(-max_shift, min(max_shift, delta)) * strength


def modulate(
    img: Image.Image,
    hue: float = 0.0,
    saturation: float = 1.0,
    brightness: float = 1.0,
) -> Image.Image:
    """Rotate hue (degrees) and scale saturation / brightness in HSV space."""
    rgba = img.convert("RGBA")
    alpha = rgba.getchannel("A")
    hsv = np.asarray(rgba.convert("RGB").convert("HSV"), dtype=np.float32)

    hsv[..., 0] = (hsv[..., 0] + hue / 360.0 * 256.0) % 256.0
    hsv[..., 1] = np.clip(hsv[..., 1] * saturation, 0, 255)
    hsv[..., 2] = np.clip(hsv[..., 2] * brightness, 0, 255)

    bands = [Image.fromarray(hsv[..., i].astype(np.uint8)) for i in range(3)]
    out = Image.merge("HSV", bands).convert("RGBA")
    out.putalpha(alpha)
    return out


def harmonize(
    src: Union[str, Path],
    brand_hex: Optional[str] = None,
    mode: str = "brand-align",
    strength: float = 1.0,
    cache_dir: Optional[Path] = None,
    conf: Optional[ColorFitConfig] = None,
) -> Path:
    """Write the colour-fitted image and return its path; the original on failure."""
    conf = conf or cfg.colorfit
    src = Path(src)
    brand_hex = brand_hex or conf.default_brand
    cache_dir = cache_dir or cfg.paths.colorfit_dir

    if mode not in MODES:
        log.warning("Unknown colour-fit mode %r, keeping original", mode)
        return src

    out = cache_dir / f"cf_{cache_key(src, brand_hex, mode, strength)}.png"
    if out.exists():
        log.debug("Colour-fit cache HIT %s", out.name)
        return out

    try:
        with Image.open(src) as im:
            img = im.convert("RGBA")

        if mode == "brand-align":
            delta = hue_delta(dominant_hue(src), C.to_hsl(brand_hex)[0], conf.max_hue_shift, strength)
            result = modulate(img, hue=delta, saturation=1 + conf.brand_saturation * strength)
        elif mode == "pop":
            result = modulate(img, saturation=conf.pop_saturation * strength,
                              brightness=conf.pop_brightness)
        else:
            result = modulate(img, saturation=conf.soft_saturation)

        cache_dir.mkdir(parents=True, exist_ok=True)
        result.save(out, "PNG")
    except Exception as exc:
        log.warning("Colour-fit failed for %s: %s", src.name, exc)
        return src

    log.info("Colour-fit [%s] %s → %s", mode, src.name, out.name)
    return out
