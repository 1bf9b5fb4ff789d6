"""
Tenant tweaks: per-template (or ``"*"`` wildcard) scale factors applied
to template layers before auto-layout.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Optional, Tuple

from core.layers import BadgeLayer, ImageLayer, Layer, TextLayer
from storage.store import DocumentStore
from utils.log_config import get_logger

log = get_logger(__name__)

NAMESPACE = "tweaks"
WILDCARD = "*"

_EPS = 1e-9


@dataclass
class Tweak:
    title_scale:          Optional[float] = None
    price_scale:          Optional[float] = None
    badge_scale:          Optional[float] = None
    image_scale:          Optional[float] = None
    spacing_scale:        Optional[float] = None
    safe_margin_override: Optional[int]   = None

    def merged(self, other: "Tweak") -> "Tweak":
        """*other*'s set fields win over ours."""
        values = asdict(self)
        for f in fields(other):
            v = getattr(other, f.name)
            if v is not None:
                values[f.name] = v
        return Tweak(**values)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tweak":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class TweakSet:
    def __init__(self, entries: Optional[Dict[str, Tweak]] = None) -> None:
        self.entries: Dict[str, Tweak] = dict(entries or {})

    def for_template(self, template_id: str) -> Tweak:
        base = self.entries.get(WILDCARD, Tweak())
        specific = self.entries.get(template_id)
        return base.merged(specific) if specific else base

    def set(self, template_id: str, tweak: Tweak) -> None:
        self.entries[template_id] = tweak

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TweakSet":
        return cls({k: Tweak.from_dict(v) for k, v in (data or {}).items()})

    def to_dict(self) -> Dict[str, Any]:
        return {k: v.to_dict() for k, v in self.entries.items()}


def load_tweaks(store: DocumentStore, tenant: str) -> Optional[TweakSet]:
    doc = store.get(NAMESPACE, tenant)
    return TweakSet.from_dict(doc.data) if doc.exists else None


def save_tweaks(store: DocumentStore, tenant: str, tweaks: TweakSet) -> None:
    store.update(NAMESPACE, tenant, lambda _: tweaks.to_dict())


def _scaled_font(size: int, scale: Optional[float]) -> int:
    return int(math.floor(size * (scale or 1.0) + _EPS))


def apply_tweaks(
    layers: List[Layer],
    template_id: str,
    tweaks: Optional[TweakSet],
    profile,
) -> Tuple[List[Layer], Any]:
    """Scale layers in place; returns ``(layers, profile)``."""
    if tweaks is None:
        return layers, profile

    spec = tweaks.for_template(template_id)

    if spec.safe_margin_override:
        profile = profile.model_copy(update={"safe_margin": int(spec.safe_margin_override)})

    for ly in layers:
        if isinstance(ly, TextLayer):
            scale = spec.price_scale if ly.looks_like_price else spec.title_scale
            ly.font_size = _scaled_font(ly.font_size, scale)
        elif isinstance(ly, (BadgeLayer, ImageLayer)):
            scale = spec.badge_scale if isinstance(ly, BadgeLayer) else spec.image_scale
            if scale:
                ly.w *= scale
                ly.h *= scale
        else:
            continue
        if spec.spacing_scale:
            ly.y *= spec.spacing_scale

    log.debug("Tweaks applied for %s: %s", template_id, spec.to_dict())
    return layers, profile
