"""Small image utilities shared by compositor, layout & colour code."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image, ImageOps

from utils.log_config import get_logger

log = get_logger(__name__)

PathLike = Union[str, Path]


def open_rgba(path: PathLike) -> Optional[Image.Image]:
    """Load as RGBA, or ``None`` if the file is missing / unreadable."""
    try:
        with Image.open(Path(path)) as im:
            return im.convert("RGBA")
    except (OSError, ValueError) as exc:
        log.warning("Cannot open image %s: %s", path, exc)
        return None


def fit_image(
    img: Image.Image,
    box: Tuple[int, int],
    mode: str = "contain",
) -> Tuple[Image.Image, Tuple[int, int]]:
    """
    Resize *img* for a ``box`` of ``(w, h)``.

    ``contain`` keeps the aspect ratio and centres the result inside the
    box (no cropping); ``cover`` fills the box, centre-cropping overflow.
    Returns the resized image and its offset inside the box.
    """
    bw, bh = max(1, int(box[0])), max(1, int(box[1]))
    if mode == "cover":
        return ImageOps.fit(img, (bw, bh), method=Image.Resampling.LANCZOS), (0, 0)

    scale = min(bw / img.width, bh / img.height)
    dw = max(1, min(bw, round(img.width * scale)))
    dh = max(1, min(bh, round(img.height * scale)))
    resized = img.resize((dw, dh), Image.Resampling.LANCZOS)
    return resized, ((bw - dw) // 2, (bh - dh) // 2)


def composite_at(canvas: Image.Image, layer: Image.Image, xy: Tuple[int, int]) -> None:
    """Alpha-blend *layer* onto RGBA *canvas* at *xy* (may be off-canvas)."""
    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    overlay.paste(layer.convert("RGBA"), (int(xy[0]), int(xy[1])))
    canvas.alpha_composite(overlay)
