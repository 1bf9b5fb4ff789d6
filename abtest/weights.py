"""
Per-(tenant, market) template statistics for the A/B bandit.

One versioned document per pair holds every arm's counters together
with ``lastDecayAt``, so decay and counter updates commit atomically::

    {"templates": {"basic-sale": {"plays": 4.0, "wins": 1.0}, ...},
     "lastDecayAt": "2024-05-01T00:00:00+00:00"}
"""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from config.settings import BanditConfig, cfg
from storage.store import DocumentStore
from utils.log_config import get_logger

log = get_logger(__name__)

NAMESPACE = "ab_stats"

SECONDS_PER_DAY = 86400.0


@dataclass
class ArmStats:
    plays: float = 0.0
    wins:  float = 0.0

    @property
    def rate(self) -> float:
        return self.wins / self.plays if self.plays > 0 else 0.5

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def stats_key(tenant: str, market: str) -> str:
    return f"{tenant}/{market}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def apply_decay(stats: Dict[str, ArmStats], days: float, half_life: float) -> Dict[str, ArmStats]:
    """Scale every counter by ``0.5 ** (days / half_life)``."""
    if days <= 0 or half_life <= 0:
        return {k: ArmStats(v.plays, v.wins) for k, v in stats.items()}
    factor = 0.5 ** (days / half_life)
    return {k: ArmStats(v.plays * factor, v.wins * factor) for k, v in stats.items()}


def decode(doc: Optional[Dict[str, Any]]) -> Dict[str, ArmStats]:
    arms = (doc or {}).get("templates") or {}
    return {
        k: ArmStats(float(v.get("plays", 0)), float(v.get("wins", 0)))
        for k, v in arms.items()
    }


def encode(stats: Dict[str, ArmStats], last_decay_at: str) -> Dict[str, Any]:
    return {
        "templates": {k: v.to_dict() for k, v in stats.items()},
        "lastDecayAt": last_decay_at,
    }


def decay_if_due(
    doc: Optional[Dict[str, Any]],
    now: datetime,
    half_life: float,
    min_days: float = 0.5,
) -> Dict[str, Any]:
    """Return *doc* decayed to *now* when at least *min_days* have passed."""
    stats = decode(doc)
    last = _parse_ts((doc or {}).get("lastDecayAt"))
    if last is None:
        return encode(stats, now.isoformat())

    days = max(0.0, (now - last).total_seconds() / SECONDS_PER_DAY)
    if days >= min_days and half_life > 0:
        log.debug("Decaying A/B stats over %.2f days (half-life %.1f)", days, half_life)
        return encode(apply_decay(stats, days, half_life), now.isoformat())
    return encode(stats, doc["lastDecayAt"])


def pick_templates_eps_greedy(
    stats: Dict[str, ArmStats],
    templates: Sequence[str],
    n: int = 3,
    epsilon: float = 0.2,
    rng: Optional[random.Random] = None,
    tie_break: str = "fewest_plays",
) -> List[str]:
    """
    Choose ``min(n, len(templates))`` distinct templates.

    Each slot explores (uniformly among the not-yet-chosen templates)
    with probability *epsilon*, otherwise exploits the best remaining
    win rate; unplayed arms rate 0.5.  Equal rates prefer fewer plays
    unless *tie_break* is ``"none"``.
    """
    rng = rng or random.Random()
    pool = list(dict.fromkeys(templates))
    target = max(0, min(n, len(pool)))

    def arm(t: str) -> ArmStats:
        return stats.get(t) or ArmStats()

    if tie_break == "fewest_plays":
        ranked = sorted(pool, key=lambda t: (-arm(t).rate, arm(t).plays))
    else:
        ranked = sorted(pool, key=lambda t: -arm(t).rate)

    chosen: List[str] = []
    while len(chosen) < target:
        remaining = [t for t in pool if t not in chosen]
        if rng.random() < epsilon:
            chosen.append(rng.choice(remaining))
        else:
            chosen.append(next(t for t in ranked if t not in chosen))
    return chosen


class StatsRepository:
    """Bandit counters in the document store, one document per tenant/market."""

    def __init__(self, store: DocumentStore, conf: Optional[BanditConfig] = None) -> None:
        self.store = store
        self.cfg = conf or cfg.bandit

    def _update(self, tenant: str, market: str, mutate, templates: Iterable[str] = (), now=None):
        now = now or _now()
        templates = list(templates)

        def _apply(doc):
            doc = decay_if_due(doc, now, self.cfg.half_life_days, self.cfg.min_decay_days)
            stats = decode(doc)
            for t in templates:
                stats.setdefault(t, ArmStats())
            stats = mutate(stats)
            return encode(stats, doc["lastDecayAt"])

        doc = self.store.update(NAMESPACE, stats_key(tenant, market), _apply)
        return decode(doc)

    def load(
        self,
        tenant: str,
        market: str,
        templates: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, ArmStats]:
        """Counters after registering *templates* and applying any due decay."""
        templates = self.cfg.templates if templates is None else templates
        return self._update(tenant, market, lambda s: s, templates, now)

    def record_plays(self, tenant: str, market: str, picks: Iterable[str]) -> Dict[str, ArmStats]:
        picks = list(picks)

        def _plays(stats):
            for t in picks:
                stats.setdefault(t, ArmStats()).plays += 1
            return stats

        return self._update(tenant, market, _plays)

    def record_win(self, tenant: str, market: str, winner: str) -> Dict[str, ArmStats]:
        def _win(stats):
            stats.setdefault(winner, ArmStats()).wins += 1
            return stats

        return self._update(tenant, market, _win)

    def add_counts(self, tenant: str, market: str, template: str, plays: float, wins: float) -> ArmStats:
        def _add(stats):
            arm = stats.setdefault(template, ArmStats())
            arm.plays += plays
            arm.wins += wins
            return stats

        return self._update(tenant, market, _add)[template]

    def bootstrap(
        self,
        tenant: str,
        market: str,
        init: Dict[str, float],
        templates: Optional[Iterable[str]] = None,
    ) -> bool:
        """Seed ``plays = 2w, wins = w`` priors, only while every counter is zero."""
        templates = list(self.cfg.templates if templates is None else templates)
        applied = []

        def _seed(stats):
            applied.clear()
            if any(a.plays or a.wins for a in stats.values()):
                return stats
            for t in templates:
                w = float(init.get(t, 0) or 0)
                stats[t] = ArmStats(plays=w * 2, wins=w)
            applied.append(True)
            return stats

        self._update(tenant, market, _seed, templates)
        if applied:
            log.info("Bootstrapped A/B stats for %s/%s", tenant, market)
        else:
            log.info("A/B stats already exist for %s/%s, bootstrap skipped", tenant, market)
        return bool(applied)
