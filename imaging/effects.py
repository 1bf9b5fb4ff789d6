"""Drop shadows under product images."""

from __future__ import annotations

import numpy as np
from PIL import Image

from imaging.helpers import composite_at


def draw_ellipse_shadow(
    canvas: Image.Image,
    cx: float,
    cy: float,
    w: float,
    h: float,
    opacity: float = 0.3,
) -> None:
    """Soft radial black ellipse centred on ``(cx, cy)``."""
    w, h = max(2, int(w)), max(2, int(h))
    yy, xx = np.mgrid[0:h, 0:w].astype(np.float32)
    nx = (xx - (w - 1) / 2) / (w / 2)
    ny = (yy - (h - 1) / 2) / (h / 2)
    falloff = np.clip(1.0 - np.sqrt(nx ** 2 + ny ** 2), 0.0, 1.0)
    alpha = (falloff * 255 * max(0.0, min(1.0, opacity))).astype(np.uint8)

    shadow = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    shadow.putalpha(Image.fromarray(alpha))
    composite_at(canvas, shadow, (int(cx - w / 2), int(cy - h / 2)))


def draw_floor_reflection(
    canvas: Image.Image,
    x: float,
    y: float,
    w: float,
    h: float,
    opacity: float = 0.3,
) -> None:
    """White vertical gradient fading downward from *y*."""
    w, h = max(1, int(w)), max(1, int(h))
    ramp = np.linspace(1.0, 0.0, h, dtype=np.float32)[:, None]
    alpha = np.repeat(ramp * 255 * max(0.0, min(1.0, opacity)), w, axis=1).astype(np.uint8)

    floor = Image.new("RGBA", (w, h), (255, 255, 255, 0))
    floor.putalpha(Image.fromarray(alpha))
    composite_at(canvas, floor, (int(x), int(y)))
