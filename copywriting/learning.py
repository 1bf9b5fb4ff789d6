"""
Vocabulary learning: counts which title tokens survive editing and
proposes keep / drop / replace additions to the tenant dictionary.
Suggestions are advisory; ``terms.apply_terms_update`` applies them.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from config.settings import TermsConfig, cfg
from copywriting.terms import load_terms
from storage.store import DocumentStore
from utils.log_config import get_logger

log = get_logger(__name__)

NAMESPACE = "term_stats"

_CHUNK_SPLIT = re.compile(r"[\s、。・／/｜|\-—()\[\]【】「」『』:,;!？?！＋+~～]+")
_TOKEN_RUN = re.compile(r"[一-龠ぁ-ゖァ-ヺーA-Za-z0-9%Ａ-Ｚａ-ｚ０-９％]+")


@dataclass
class TokenCandidate:
    token:        str
    count:        int
    removed_rate: float


@dataclass
class ReplaceCandidate:
    source: str
    target: str
    count:  int


@dataclass
class TermSuggestions:
    keep:    List[TokenCandidate]   = field(default_factory=list)
    drop:    List[TokenCandidate]   = field(default_factory=list)
    replace: List[ReplaceCandidate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, list]:
        return {
            "keep": [asdict(c) for c in self.keep],
            "drop": [asdict(c) for c in self.drop],
            "replace": [asdict(c) for c in self.replace],
        }


def normalize_token(token: str) -> str:
    return unicodedata.normalize("NFKC", token).lower().strip()


def tokenize(text: str) -> List[str]:
    """Coarse split on whitespace / punctuation, then CJK + alnum runs of 2+."""
    tokens: List[str] = []
    for chunk in _CHUNK_SPLIT.split(text or ""):
        if not chunk:
            continue
        tokens.extend(t for t in _TOKEN_RUN.findall(chunk) if len(t) >= 2)
    return tokens


def record_tokens(stats: Dict[str, dict], original: str, final: str) -> Dict[str, dict]:
    """Fold one (original, final) title pair into *stats* and return it."""
    survivors = {normalize_token(t) for t in tokenize(final)}
    for token in tokenize(original):
        base = normalize_token(token)
        row = stats.setdefault(base, {"count": 0, "removed": 0, "variants": {}})
        row["count"] += 1
        row["variants"][token] = row["variants"].get(token, 0) + 1
        if base not in survivors:
            row["removed"] += 1
    return stats


def update_term_stats(store: DocumentStore, tenant: str, original: str, final: str) -> None:
    if not original or not final:
        return
    store.update(
        NAMESPACE, tenant,
        lambda stats: record_tokens(stats, original, final),
        default={},
    )
    log.debug("Term stats updated for %s", tenant)


def derive_suggestions(
    stats: Dict[str, dict],
    keep: List[str],
    drop: List[str],
    replace: Dict[str, str],
    limit: int,
    conf: TermsConfig,
) -> TermSuggestions:
    known = set(keep) | set(drop)
    rows = []
    for base, row in stats.items():
        count = int(row.get("count", 0))
        rate = row.get("removed", 0) / count if count else 0.0
        rows.append((base, count, rate, row.get("variants") or {}))

    by_count = sorted(rows, key=lambda r: -r[1])

    keep_c = [
        TokenCandidate(base, count, round(rate, 2))
        for base, count, rate, _ in by_count
        if count >= conf.min_count and rate <= conf.keep_max_removed and base not in known
    ][:limit]

    drop_c = [
        TokenCandidate(base, count, round(rate, 2))
        for base, count, rate, _ in by_count
        if count >= conf.min_count and rate >= conf.drop_min_removed and base not in known
    ][:limit]

    replace_c: List[ReplaceCandidate] = []
    for _, _, _, variants in rows:
        if len(variants) <= 1:
            continue
        ranked = sorted(variants.items(), key=lambda kv: -kv[1])
        canonical = ranked[0][0]
        for surface, n in ranked[1:]:
            if surface in replace:
                continue
            replace_c.append(ReplaceCandidate(surface, canonical, n))
    replace_c.sort(key=lambda c: -c.count)

    return TermSuggestions(keep=keep_c, drop=drop_c, replace=replace_c[:limit])


def suggest_terms(
    store: DocumentStore,
    tenant: str,
    limit: Optional[int] = None,
    conf: Optional[TermsConfig] = None,
) -> TermSuggestions:
    conf = conf or cfg.terms
    limit = conf.suggest_limit if limit is None else limit
    stats = store.get(NAMESPACE, tenant).data
    if not stats:
        return TermSuggestions()
    terms = load_terms(store, tenant)
    return derive_suggestions(stats, terms.keep, terms.drop, terms.replace, limit, conf)
