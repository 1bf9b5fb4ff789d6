"""Tests for bandit statistics and template selection."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from abtest.weights import (
    NAMESPACE,
    ArmStats,
    StatsRepository,
    apply_decay,
    decay_if_due,
    encode,
    pick_templates_eps_greedy,
    stats_key,
)
from config.settings import BanditConfig

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
TEMPLATES = ["basic-sale", "product-hero", "rank-award", "price-push"]


class TestDecay:

    def test_rate_defaults_to_half(self):
        assert ArmStats().rate == 0.5
        assert ArmStats(plays=4, wins=1).rate == 0.25

    def test_one_half_life_halves_counters(self):
        out = apply_decay({"a": ArmStats(10, 4)}, days=30, half_life=30)
        assert out["a"].plays == pytest.approx(5.0)
        assert out["a"].wins == pytest.approx(2.0)

    def test_zero_days_is_copy(self):
        src = {"a": ArmStats(10, 4)}
        out = apply_decay(src, days=0, half_life=30)
        assert out == src
        assert out["a"] is not src["a"]

    def test_missing_timestamp_starts_clock(self):
        doc = {"templates": {"a": {"plays": 10, "wins": 4}}}
        out = decay_if_due(doc, NOW, half_life=30)
        assert out["templates"]["a"] == {"plays": 10.0, "wins": 4.0}
        assert out["lastDecayAt"] == NOW.isoformat()

    def test_due_decay(self):
        doc = encode({"a": ArmStats(8, 2)}, (NOW - timedelta(days=60)).isoformat())
        out = decay_if_due(doc, NOW, half_life=30)
        assert out["templates"]["a"]["plays"] == pytest.approx(2.0)
        assert out["templates"]["a"]["wins"] == pytest.approx(0.5)
        assert out["lastDecayAt"] == NOW.isoformat()

    def test_not_due_keeps_timestamp(self):
        last = (NOW - timedelta(hours=6)).isoformat()
        out = decay_if_due(encode({"a": ArmStats(8, 2)}, last), NOW, half_life=30, min_days=0.5)
        assert out["templates"]["a"]["plays"] == 8.0
        assert out["lastDecayAt"] == last

    def test_zero_half_life_disables_decay(self):
        doc = encode({"a": ArmStats(8, 2)}, (NOW - timedelta(days=60)).isoformat())
        out = decay_if_due(doc, NOW, half_life=0)
        assert out["templates"]["a"]["plays"] == 8.0


class TestEpsGreedy:

    def test_exploits_best_rates(self):
        stats = {
            "basic-sale": ArmStats(10, 1),
            "product-hero": ArmStats(10, 8),
            "rank-award": ArmStats(10, 6),
            "price-push": ArmStats(10, 2),
        }
        picks = pick_templates_eps_greedy(stats, TEMPLATES, n=2, epsilon=0.0)
        assert picks == ["product-hero", "rank-award"]

    def test_unplayed_ties_prefer_fewest_plays(self):
        stats = {"basic-sale": ArmStats(10, 5), "product-hero": ArmStats(0, 0)}
        picks = pick_templates_eps_greedy(stats, ["basic-sale", "product-hero"], n=1, epsilon=0.0)
        assert picks == ["product-hero"]

    def test_no_tie_break_keeps_order(self):
        stats = {"basic-sale": ArmStats(10, 5), "product-hero": ArmStats(0, 0)}
        picks = pick_templates_eps_greedy(
            stats, ["basic-sale", "product-hero"], n=1, epsilon=0.0, tie_break="none")
        assert picks == ["basic-sale"]

    @pytest.mark.parametrize("seed", range(10))
    def test_exploration_stays_distinct(self, seed):
        picks = pick_templates_eps_greedy({}, TEMPLATES, n=3, epsilon=1.0, rng=random.Random(seed))
        assert len(picks) == 3
        assert len(set(picks)) == 3
        assert set(picks) <= set(TEMPLATES)

    def test_n_capped_by_templates(self):
        picks = pick_templates_eps_greedy({}, ["a", "b", "a"], n=5, epsilon=0.0)
        assert sorted(picks) == ["a", "b"]

    def test_zero_n(self):
        assert pick_templates_eps_greedy({}, TEMPLATES, n=0) == []


class TestStatsRepository:

    def setup_method(self):
        self.conf = BanditConfig(templates=tuple(TEMPLATES), half_life_days=30)

    def test_load_registers_templates(self, store):
        stats = StatsRepository(store, self.conf).load("demo", "generic")
        assert set(stats) == set(TEMPLATES)
        assert all(a.plays == 0 and a.wins == 0 for a in stats.values())
        doc = store.get(NAMESPACE, stats_key("demo", "generic")).data
        assert "lastDecayAt" in doc

    def test_plays_and_wins(self, store):
        repo = StatsRepository(store, self.conf)
        repo.record_plays("demo", "generic", ["basic-sale", "rank-award"])
        repo.record_plays("demo", "generic", ["basic-sale"])
        stats = repo.record_win("demo", "generic", "basic-sale")
        assert stats["basic-sale"] == ArmStats(2, 1)
        assert stats["rank-award"] == ArmStats(1, 0)

    def test_markets_are_isolated(self, store):
        repo = StatsRepository(store, self.conf)
        repo.record_plays("demo", "r10", ["basic-sale"])
        assert repo.load("demo", "yss")["basic-sale"].plays == 0

    def test_load_applies_decay(self, store):
        repo = StatsRepository(store, self.conf)
        repo.add_counts("demo", "generic", "basic-sale", 100, 10)
        later = datetime.now(timezone.utc) + timedelta(days=30)
        stats = repo.load("demo", "generic", now=later)
        assert stats["basic-sale"].plays == pytest.approx(50.0, rel=1e-3)
        assert stats["basic-sale"].wins == pytest.approx(5.0, rel=1e-3)

    def test_bootstrap_only_once(self, store):
        repo = StatsRepository(store, self.conf)
        assert repo.bootstrap("demo", "generic", {"basic-sale": 3, "rank-award": 1}) is True
        stats = repo.load("demo", "generic")
        assert stats["basic-sale"] == ArmStats(6, 3)
        assert stats["rank-award"] == ArmStats(2, 1)
        assert stats["price-push"] == ArmStats(0, 0)

        assert repo.bootstrap("demo", "generic", {"basic-sale": 50}) is False
        assert repo.load("demo", "generic")["basic-sale"] == ArmStats(6, 3)

    def test_bootstrap_skipped_after_plays(self, store):
        repo = StatsRepository(store, self.conf)
        repo.record_plays("demo", "generic", ["price-push"])
        assert repo.bootstrap("demo", "generic", {"basic-sale": 3}) is False
