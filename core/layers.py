"""
Drawable layer primitives produced by templates.

Colours are ``Fill`` values: either a ``PaletteRef`` naming a slot of the
brand palette (``primary``, ``secondary``, ``accent``, ``text``) or a
``LiteralColor``.  Palette refs are resolved at draw time so a single
template serves every brand.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from config.settings import DEFAULT_COLORS

PRICE_PATTERN = re.compile(r"価格|¥|￥|円|\$")

FIT_MODES = ("contain", "cover")
SHADOW_MODES = ("none", "ellipse", "floor")
COLOR_FIT_MODES = ("brand-align", "pop", "soft")


@dataclass(frozen=True)
class PaletteRef:
    token: str


@dataclass(frozen=True)
class LiteralColor:
    value: str


Fill = Union[PaletteRef, LiteralColor]


def fill(value: str) -> Fill:
    """``fill("primary")`` → palette ref, ``fill("#fff")`` → literal."""
    if value.startswith("#"):
        return LiteralColor(value)
    return PaletteRef(value)


def resolve_fill(value: Fill, colors: Dict[str, str]) -> str:
    if isinstance(value, LiteralColor):
        return value.value
    if value.token in colors:
        return colors[value.token]
    if value.token in DEFAULT_COLORS:
        return DEFAULT_COLORS[value.token]
    return colors.get("primary", "#000000")


@dataclass
class RectLayer:
    x: float
    y: float
    w: float
    h: float
    fill: Fill = field(default_factory=lambda: PaletteRef("primary"))

    kind = "rect"


@dataclass
class TextLayer:
    text:        str
    x:           float
    y:           float
    max_width:   float
    font_size:   int
    font_weight: int = 700
    fill:        Fill = field(default_factory=lambda: PaletteRef("text"))

    kind = "text"

    @property
    def looks_like_price(self) -> bool:
        return bool(PRICE_PATTERN.search(self.text or ""))


@dataclass
class BadgeLayer:
    text:      str
    x:         float
    y:         float
    w:         float
    h:         float
    fill:      Fill = field(default_factory=lambda: PaletteRef("accent"))
    text_fill: Fill = field(default_factory=lambda: PaletteRef("text"))

    kind = "badge"


@dataclass
class ColorFit:
    mode:      str           = "brand-align"
    strength:  float         = 1.0
    brand_hex: Optional[str] = None


@dataclass
class Outline:
    width_px: int   = 2
    color:    str   = "#ffffff"
    opacity:  float = 0.85


@dataclass
class ImageLayer:
    src:            str
    x:              float
    y:              float
    w:              float
    h:              float
    fit:            str                = "contain"
    radius:         Optional[float]    = None
    remove_bg:      bool               = False
    shadow:         str                = "none"
    shadow_opacity: float              = 0.3
    shadow_offset:  float              = 0.0
    color_fit:      Optional[ColorFit] = None
    outline:        Optional[Outline]  = None

    kind = "image"


Layer = Union[RectLayer, TextLayer, BadgeLayer, ImageLayer]

DRAW_ORDER = ("rect", "image", "text", "badge")


def layers_by_kind(layers: List[Layer]) -> List[Layer]:
    """Stable sort into the fixed draw order rect → image → text → badge."""
    rank = {k: i for i, k in enumerate(DRAW_ORDER)}
    return sorted(layers, key=lambda ly: rank.get(ly.kind, len(rank)))
