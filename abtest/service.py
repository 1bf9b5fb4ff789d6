"""
A/B suggestion service: pick templates with the bandit, render one
candidate per template, remember the session, learn from the winner.
"""

from __future__ import annotations

import dataclasses
import random
import secrets
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from abtest.weights import ArmStats, StatsRepository, pick_templates_eps_greedy
from config.settings import AppConfig, cfg
from core.compositor import BannerCompositor, ProfileSource, resolve_profile
from core.models import BannerRequest
from storage.store import DocumentStore
from utils.exceptions import (
    ChoiceNotFoundError,
    InvalidMetricsError,
    SessionNotFoundError,
    StoreError,
)
from utils.log_config import get_logger

log = get_logger(__name__)

SESSIONS = "ab_sessions"

CTR_COLUMNS = ("template", "impressions", "clicks")


def new_session_id() -> str:
    return f"{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def session_key(tenant: str, session_id: str) -> str:
    return f"{tenant}/{session_id}"


class ABService:

    def __init__(
        self,
        store: DocumentStore,
        compositor: Optional[BannerCompositor] = None,
        conf: Optional[AppConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.cfg = conf or cfg
        self.store = store
        self.compositor = compositor or BannerCompositor(self.cfg, store=store)
        self.stats = StatsRepository(store, self.cfg.bandit)
        self.rng = rng or random.Random()

    # ── suggest / select ────────────────────────────────────
    def suggest(
        self,
        tenant: str,
        market: str,
        n: Optional[int],
        request: BannerRequest,
        profile: ProfileSource,
        templates: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        """
        Render ``n`` candidates chosen epsilon-greedily.

        Returns ``{"sessionId": ..., "candidates": [{"id", "template", "path"}]}``.
        Persistence failures are logged; the candidates are still returned.
        """
        bc = self.cfg.bandit
        n = bc.default_n if n is None else n
        universe = list(bc.templates if templates is None else templates)
        profile = resolve_profile(profile)

        try:
            stats = self.stats.load(tenant, market, universe)
        except StoreError as exc:
            log.warning("A/B stats unavailable for %s/%s: %s", tenant, market, exc)
            stats = {}

        picks = pick_templates_eps_greedy(stats, universe, n, bc.epsilon, self.rng, bc.tie_break)

        try:
            self.stats.record_plays(tenant, market, picks)
        except StoreError as exc:
            log.warning("Plays not recorded for %s/%s: %s", tenant, market, exc)

        session_id = new_session_id()
        out_dir = self.cfg.paths.output_dir
        base = dataclasses.replace(request, tenant=tenant, market=market)

        candidates: List[Dict[str, str]] = []
        for tpl in picks:
            out = out_dir / f"ab_{session_id}_{tpl}.png"
            path = self.compositor.generate(base.with_template(tpl), profile, out_path=out)
            candidates.append({"id": uuid.uuid4().hex[:8], "template": tpl, "path": str(path)})

        record = {
            "picks": candidates,
            "market": market,
            "request": base.summary(),
            "createdAt": time.time(),
        }
        try:
            self.store.update(SESSIONS, session_key(tenant, session_id), lambda _: record)
        except StoreError as exc:
            log.warning("Session %s not stored: %s", session_id, exc)

        log.info("A/B session %s [%s/%s]: %s", session_id, tenant, market, ", ".join(picks))
        return {"sessionId": session_id, "candidates": candidates}

    def select_winner(self, tenant: str, market: str, session_id: str, choice_id: str) -> Dict[str, Any]:
        doc = self.store.get(SESSIONS, session_key(tenant, session_id))
        if not doc.exists:
            raise SessionNotFoundError(f"session not found: {session_id}")

        chosen = next((p for p in doc.data.get("picks", []) if p.get("id") == choice_id), None)
        if chosen is None:
            raise ChoiceNotFoundError(f"choice not found: {choice_id}")

        self.stats.record_win(tenant, market, chosen["template"])
        log.info("A/B winner %s for session %s", chosen["template"], session_id)
        return {"ok": True, "winner": chosen["template"]}

    # ── priors & external metrics ───────────────────────────
    def bootstrap(self, tenant: str, market: str, init: Dict[str, float]) -> bool:
        return self.stats.bootstrap(tenant, market, init)

    def ingest_ctr(
        self,
        tenant: str,
        market: str,
        template: str,
        impressions: float,
        clicks: float,
    ) -> ArmStats:
        if impressions < 0 or clicks < 0:
            raise InvalidMetricsError(
                f"invalid metrics for {template}: impressions={impressions}, clicks={clicks}")
        return self.stats.add_counts(tenant, market, template, impressions, clicks)

    def ingest_ctr_frame(
        self,
        df: pd.DataFrame,
        tenant: Optional[str] = None,
        market: Optional[str] = None,
    ) -> Dict[str, ArmStats]:
        """
        Batch-ingest rows of ``template, impressions, clicks`` (plus
        optional ``tenant`` / ``market`` columns overriding the defaults).
        Rows are validated before any counter is touched.
        """
        missing = [c for c in CTR_COLUMNS if c not in df.columns]
        if missing:
            raise InvalidMetricsError(f"CTR data missing columns: {', '.join(missing)}")

        rows = df.copy()
        if "tenant" not in rows.columns:
            rows["tenant"] = tenant
        if "market" not in rows.columns:
            rows["market"] = market or "generic"
        if rows["tenant"].isna().any():
            raise InvalidMetricsError("CTR rows need a tenant")

        try:
            rows["impressions"] = pd.to_numeric(rows["impressions"])
            rows["clicks"] = pd.to_numeric(rows["clicks"])
        except (TypeError, ValueError) as exc:
            raise InvalidMetricsError(f"non-numeric CTR data: {exc}") from exc
        if (rows["impressions"] < 0).any() or (rows["clicks"] < 0).any():
            raise InvalidMetricsError("CTR data contains negative counts")

        totals = rows.groupby(["tenant", "market", "template"], sort=False)[["impressions", "clicks"]].sum()

        result: Dict[str, ArmStats] = {}
        for (t, m, tpl), row in totals.iterrows():
            result[f"{t}/{m}/{tpl}"] = self.ingest_ctr(t, m, tpl, float(row["impressions"]), float(row["clicks"]))
        log.info("Ingested CTR for %d template(s)", len(result))
        return result

    def ingest_ctr_csv(
        self,
        path: Union[str, Path],
        tenant: Optional[str] = None,
        market: Optional[str] = None,
    ) -> Dict[str, ArmStats]:
        try:
            df = pd.read_csv(path)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise InvalidMetricsError(f"cannot read CTR CSV {path}: {exc}") from exc
        return self.ingest_ctr_frame(df, tenant, market)
