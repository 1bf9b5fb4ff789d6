"""
Heuristic layout nudges applied after tweaks:

- title on 2+ lines → shrink it a little and push price / badge down
- short title (≤ 10 visible chars) → enlarge a little
- portrait product image → taller, slightly narrower box;
  landscape → lower box; the box centre is kept
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image

from config.settings import LayoutConfig, cfg
from core.layers import BadgeLayer, ImageLayer, Layer, TextLayer
from utils.log_config import get_logger

log = get_logger(__name__)


def find_title(layers: List[Layer], title_text: Optional[str] = None) -> Optional[TextLayer]:
    texts = [ly for ly in layers if isinstance(ly, TextLayer)]
    if not texts:
        return None
    if title_text is not None:
        for ly in texts:
            if ly.text == title_text:
                return ly
    biggest = max(ly.font_size for ly in texts)
    return next(ly for ly in texts if ly.font_size == biggest)


def _image_aspect(src: str) -> float:
    with Image.open(Path(src)) as im:
        return im.width / im.height


def auto_adapt_layers(
    layers: List[Layer],
    size: Tuple[int, int],
    title_text: Optional[str] = None,
    safe_margin: Optional[int] = None,
    conf: Optional[LayoutConfig] = None,
) -> List[Layer]:
    """Adjust *layers* in place and return them; never raises on image errors."""
    conf = conf or cfg.layout
    if safe_margin is None:
        safe_margin = cfg.render.default_safe_margin
    W, H = size

    title = find_title(layers, title_text)
    if title is not None and isinstance(title.text, str):
        if len(title.text.split("\n")) >= 2:
            title.font_size = int(math.floor(title.font_size * conf.multiline_shrink))
            bump = math.floor(title.font_size * conf.push_down_ratio)
            floor_y = H - safe_margin * conf.bottom_margin_mult
            for ly in layers:
                if ly is title:
                    continue
                if isinstance(ly, BadgeLayer) or (isinstance(ly, TextLayer) and ly.looks_like_price):
                    ly.y = min(ly.y + bump, floor_y)
        elif len("".join(title.text.split())) <= conf.short_title_chars:
            title.font_size = int(math.floor(title.font_size * conf.short_title_grow))

    img = next((ly for ly in layers if isinstance(ly, ImageLayer) and ly.src), None)
    if img is not None:
        try:
            ratio = _image_aspect(img.src)
        except Exception as exc:
            log.debug("Auto-layout skipped image %s: %s", img.src, exc)
            return layers

        cx, cy = img.x + img.w / 2, img.y + img.h / 2
        if ratio < conf.portrait_ratio:
            img.h = min(img.h * conf.portrait_grow_h, H - safe_margin * 2)
            img.w = max(img.w * conf.portrait_shrink_w, conf.min_image_side)
        elif ratio > conf.landscape_ratio:
            img.h = max(img.h * conf.landscape_shrink_h, conf.min_image_side)
        img.x = cx - img.w / 2
        img.y = cy - img.h / 2

    return layers
