"""Per-call banner request."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from config.settings import cfg


@dataclass
class CatalogItem:
    image: Optional[str] = None
    title: Optional[str] = None
    price: Optional[str] = None
    badge: Optional[str] = None


@dataclass
class BannerRequest:
    title:    str
    price:    Optional[str]     = None
    discount: Optional[str]     = None
    badge:    Optional[str]     = None
    period:   Optional[str]     = None
    variants: List[str]         = field(default_factory=list)
    items:    List[CatalogItem] = field(default_factory=list)
    image:    Optional[str]     = None
    fit:      str               = "contain"
    size:     Tuple[int, int]   = cfg.render.default_size
    template: str               = "basic-sale"
    tenant:   Optional[str]     = None
    market:   str               = "generic"

    @property
    def width(self) -> int:
        return int(self.size[0])

    @property
    def height(self) -> int:
        return int(self.size[1])

    def with_template(self, template: str) -> "BannerRequest":
        return dataclasses.replace(self, template=template)

    def apply_rules(self, rules) -> "BannerRequest":
        """Hide price / discount / badge the brand profile switched off."""
        return dataclasses.replace(
            self,
            price=self.price if rules.show_price else None,
            discount=self.discount if rules.show_discount else None,
            badge=self.badge if rules.show_badge else None,
        )

    def summary(self) -> Dict[str, Any]:
        """JSON-safe description for session logs and sidecars."""
        data = dataclasses.asdict(self)
        data["size"] = list(self.size)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BannerRequest":
        data = dict(data)
        data["items"] = [
            it if isinstance(it, CatalogItem) else CatalogItem(**it)
            for it in data.get("items") or []
        ]
        if "size" in data:
            data["size"] = tuple(data["size"])
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
