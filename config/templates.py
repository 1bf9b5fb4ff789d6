"""
Banner layout templates.
Each template is a pure function ``BannerRequest -> list[Layer]``;
coordinates are fractions of the canvas so one layout fits every size.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, List

from core.layers import (
    BadgeLayer,
    ColorFit,
    ImageLayer,
    Layer,
    Outline,
    RectLayer,
    TextLayer,
    fill,
)
from core.models import BannerRequest
from utils.exceptions import UnknownTemplateError

Template = Callable[[BannerRequest], List[Layer]]

DEFAULT_TEMPLATE = "basic-sale"


def _badge(text: str, x: float, y: float, w: float, h: float) -> BadgeLayer:
    return BadgeLayer(text=text, x=x, y=y, w=w, h=h,
                      fill=fill("accent"), text_fill=fill("text"))


def basic_sale(req: BannerRequest) -> List[Layer]:
    W, H = req.size
    layers: List[Layer] = [
        RectLayer(0, 0, W, H, fill("primary")),
        RectLayer(0, math.floor(H * 0.65), W, math.floor(H * 0.35), fill("secondary")),
        TextLayer(req.title, 0.06 * W, 0.18 * H, 0.88 * W, math.floor(W * 0.1), 800),
    ]
    if req.discount:
        layers.append(_badge(req.discount, 0.06 * W, 0.56 * H, 0.28 * W, 0.14 * H))
    if req.price:
        layers.append(TextLayer(req.price, 0.06 * W, 0.8 * H, 0.88 * W, math.floor(W * 0.09), 700))
    return layers


def product_hero(req: BannerRequest) -> List[Layer]:
    W, H = req.size
    layers: List[Layer] = [
        RectLayer(0, 0, W, H, fill("secondary")),
        RectLayer(0, 0, math.floor(W * 0.52), H, fill("primary")),
        TextLayer(req.title, 0.06 * W, 0.12 * H, 0.4 * W, math.floor(W * 0.09), 900),
    ]
    if req.discount:
        layers.append(_badge(req.discount, 0.06 * W, 0.48 * H, 0.3 * W, 0.12 * H))
    if req.price:
        layers.append(TextLayer(req.price, 0.06 * W, 0.74 * H, 0.4 * W, math.floor(W * 0.1), 800))
    if req.image:
        layers.append(ImageLayer(
            src=req.image,
            x=0.55 * W, y=0.12 * H, w=0.38 * W, h=0.76 * H,
            fit=req.fit,
            radius=24,
            remove_bg=True,
            shadow="ellipse",
            shadow_opacity=0.32,
            shadow_offset=8,
            color_fit=ColorFit(mode="brand-align", strength=1.0),
            outline=Outline(width_px=2, color="#ffffff", opacity=0.85),
        ))
    return layers


def rank_award(req: BannerRequest) -> List[Layer]:
    W, H = req.size
    layers: List[Layer] = [
        RectLayer(0, 0, W, H, fill("secondary")),
        RectLayer(0, 0, W, math.floor(H * 0.38), fill("primary")),
        TextLayer(req.badge or "ランキング受賞", 0.06 * W, 0.08 * H, 0.88 * W, math.floor(W * 0.09), 900),
        TextLayer(req.title, 0.06 * W, 0.48 * H, 0.88 * W, math.floor(W * 0.1), 800),
    ]
    if req.price:
        layers.append(TextLayer(req.price, 0.06 * W, 0.76 * H, 0.88 * W, math.floor(W * 0.085), 700))
    return layers


def limited_time(req: BannerRequest) -> List[Layer]:
    W, H = req.size
    period = f"期間：{req.period}" if req.period else "期間限定"
    layers: List[Layer] = [
        RectLayer(0, 0, W, H, fill("primary")),
        RectLayer(0, math.floor(H * 0.62), W, math.floor(H * 0.38), fill("secondary")),
        TextLayer(req.title, 0.06 * W, 0.14 * H, 0.88 * W, math.floor(W * 0.11), 900),
        _badge(period, 0.06 * W, 0.48 * H, 0.48 * W, 0.12 * H),
    ]
    if req.price:
        layers.append(TextLayer(req.price, 0.06 * W, 0.78 * H, 0.88 * W, math.floor(W * 0.09), 800))
    return layers


def price_push(req: BannerRequest) -> List[Layer]:
    W, H = req.size
    layers: List[Layer] = [
        RectLayer(0, 0, W, H, fill("secondary")),
        TextLayer(req.title, 0.06 * W, 0.12 * H, 0.88 * W, math.floor(W * 0.09), 800),
    ]
    if req.discount:
        layers.append(_badge(req.discount, 0.06 * W, 0.46 * H, 0.38 * W, 0.14 * H))
    if req.price:
        layers.append(TextLayer(req.price, 0.06 * W, 0.7 * H, 0.88 * W, math.floor(W * 0.12), 900))
    return layers


def variant_grid(req: BannerRequest) -> List[Layer]:
    W, H = req.size
    cell_w, cell_h = W * 0.42, H * 0.2
    left, top = W * 0.06, H * 0.54
    gap_x, gap_y = W * 0.04, H * 0.04

    layers: List[Layer] = [
        RectLayer(0, 0, W, H, fill("primary")),
        TextLayer(req.title, 0.06 * W, 0.12 * H, 0.88 * W, math.floor(W * 0.1), 900),
    ]
    for i, name in enumerate(req.variants[:4]):
        row, col = divmod(i, 2)
        x = left + col * (cell_w + gap_x)
        y = top + row * (cell_h + gap_y)
        layers.append(RectLayer(x, y, cell_w, cell_h, fill("secondary")))
        layers.append(TextLayer(name, x + 16, y + 12, cell_w - 32, math.floor(W * 0.045), 700))
    return layers


def catalog_grid(req: BannerRequest) -> List[Layer]:
    W, H = req.size
    items = req.items[:8]
    n = max(1, len(items))
    cols = n if n <= 3 else (3 if n <= 6 else 4)
    rows = math.ceil(n / cols)

    pad_x, pad_y, gap = W * 0.06, H * 0.1, W * 0.03
    cell_w = (W - pad_x * 2 - gap * (cols - 1)) / cols
    cell_h = (H - pad_y * 2 - gap * (rows - 1)) / rows

    layers: List[Layer] = [
        RectLayer(0, 0, W, H, fill("secondary")),
        TextLayer(req.title or "おすすめアイテム", pad_x, pad_y * 0.4, W - pad_x * 2,
                  math.floor(W * 0.06), 900),
    ]
    for i, item in enumerate(items):
        r, c = divmod(i, cols)
        x = pad_x + c * (cell_w + gap)
        y = pad_y + r * (cell_h + gap) + H * 0.06
        layers.append(RectLayer(x, y, cell_w, cell_h, fill("primary")))
        if item.image:
            layers.append(ImageLayer(
                src=item.image,
                x=x + cell_w * 0.1, y=y + cell_h * 0.12,
                w=cell_w * 0.8, h=cell_h * 0.48,
                fit="contain", radius=18, remove_bg=True,
                shadow="ellipse", shadow_opacity=0.28,
            ))
        if item.title:
            layers.append(TextLayer(item.title, x + cell_w * 0.06, y + cell_h * 0.64,
                                    cell_w * 0.88, math.floor(W * 0.035), 700))
        if item.price:
            layers.append(TextLayer(item.price, x + cell_w * 0.06, y + cell_h * 0.82,
                                    cell_w * 0.88, math.floor(W * 0.04), 800))
        if item.badge:
            layers.append(_badge(item.badge, x + cell_w * 0.58, y + cell_h * 0.06,
                                 cell_w * 0.36, cell_h * 0.16))
    return layers


ALL_TEMPLATES: Dict[str, Template] = {
    "basic-sale":   basic_sale,
    "product-hero": product_hero,
    "rank-award":   rank_award,
    "limited-time": limited_time,
    "price-push":   price_push,
    "variant-grid": variant_grid,
    "catalog-grid": catalog_grid,
}


def get_template(template_id: str) -> Template:
    try:
        return ALL_TEMPLATES[template_id]
    except KeyError:
        raise UnknownTemplateError(template_id) from None
