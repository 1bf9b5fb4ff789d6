"""
Per-tenant term dictionary: keep / drop / replace rules applied to
titles before shaping.

Keep words are wrapped in ``§`` markers so the summariser always treats
them as content words; call ``unprotect()`` once shaping is done.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from copywriting.shaping import KEEP_MARK
from storage.store import DocumentStore
from utils.log_config import get_logger

log = get_logger(__name__)

NAMESPACE = "terms"


@dataclass
class TermDictionary:
    keep:    List[str]      = field(default_factory=list)
    drop:    List[str]      = field(default_factory=list)
    replace: Dict[str, str] = field(default_factory=dict)
    fullwidth_percent_to_ascii: bool = False
    collapse_spaces:            bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TermDictionary":
        data = data or {}
        norm = data.get("normalize") or {}
        return cls(
            keep=list(data.get("keep") or []),
            drop=list(data.get("drop") or []),
            replace=dict(data.get("replace") or {}),
            fullwidth_percent_to_ascii=bool(norm.get("fullwidth_percent_to_ascii", False)),
            collapse_spaces=bool(norm.get("collapse_spaces", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keep": list(self.keep),
            "drop": list(self.drop),
            "replace": dict(self.replace),
            "normalize": {
                "fullwidth_percent_to_ascii": self.fullwidth_percent_to_ascii,
                "collapse_spaces": self.collapse_spaces,
            },
        }

    @property
    def is_empty(self) -> bool:
        return not (self.keep or self.drop or self.replace
                    or self.fullwidth_percent_to_ascii or self.collapse_spaces)


@dataclass
class TermsPatch:
    add_keep:    List[str]             = field(default_factory=list)
    add_drop:    List[str]             = field(default_factory=list)
    add_replace: List[Tuple[str, str]] = field(default_factory=list)


def load_terms(store: DocumentStore, tenant: str) -> TermDictionary:
    return TermDictionary.from_dict(store.get(NAMESPACE, tenant).data)


def save_terms(store: DocumentStore, tenant: str, terms: TermDictionary) -> None:
    store.update(NAMESPACE, tenant, lambda _: terms.to_dict())


def apply_terms(text: str, terms: TermDictionary) -> str:
    s = str(text)

    if terms.fullwidth_percent_to_ascii:
        s = s.replace("％", "%")
    if terms.collapse_spaces:
        s = re.sub(r"\s+", " ", s)

    for src, dst in terms.replace.items():
        if src:
            s = s.replace(src, dst)

    for ng in terms.drop:
        if not ng:
            continue
        if any(ng in kw for kw in terms.keep):
            continue
        s = s.replace(ng, " ")

    if terms.keep:
        alternation = "|".join(
            re.escape(k) for k in sorted({k for k in terms.keep if k}, key=len, reverse=True)
        )
        if alternation:
            s = re.sub(alternation, lambda m: f"{KEEP_MARK}{m.group(0)}{KEEP_MARK}", s)

    return re.sub(r"\s{2,}", " ", s).strip()


def unprotect(text: str) -> str:
    return text.replace(KEEP_MARK, "")


def _merge_unique(base: Iterable[str], extra: Iterable[str]) -> List[str]:
    out = list(base)
    for item in extra:
        if item and item not in out:
            out.append(item)
    return out


def apply_terms_update(store: DocumentStore, tenant: str, patch: TermsPatch) -> TermDictionary:
    """Merge *patch* into the stored dictionary (check-and-set)."""

    def _merge(current):
        terms = TermDictionary.from_dict(current)
        terms.keep = _merge_unique(terms.keep, patch.add_keep)
        terms.drop = _merge_unique(terms.drop, patch.add_drop)
        for src, dst in patch.add_replace:
            terms.replace[src] = dst
        return terms.to_dict()

    doc = store.update(NAMESPACE, tenant, _merge)
    log.info(
        "Terms updated for %s: +%d keep, +%d drop, +%d replace",
        tenant, len(patch.add_keep), len(patch.add_drop), len(patch.add_replace),
    )
    return TermDictionary.from_dict(doc)
