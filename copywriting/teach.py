"""Correction samples kept per tenant and replayed as few-shot exemplars."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from config.settings import cfg
from storage.store import DocumentStore
from utils.log_config import get_logger

log = get_logger(__name__)

NAMESPACE = "teach"


@dataclass
class TeachSample:
    input:        str
    model_output: str
    ideal_output: str
    tags:         List[str]     = field(default_factory=list)
    reason:       Optional[str] = None
    created_at:   Optional[str] = None


def save_teach_sample(store: DocumentStore, tenant: str, sample: TeachSample) -> TeachSample:
    sample.created_at = datetime.now(timezone.utc).isoformat()
    store.append(NAMESPACE, tenant, asdict(sample))
    log.info("Teach sample stored for %s", tenant)
    return sample


def load_few_shots(store: DocumentStore, tenant: str, k: Optional[int] = None) -> List[TeachSample]:
    k = cfg.terms.few_shot_k if k is None else k
    return [TeachSample(**row) for row in store.tail(NAMESPACE, tenant, k)]


def few_shot_block(store: DocumentStore, tenant: str, k: Optional[int] = None) -> str:
    shots = load_few_shots(store, tenant, k)
    return "\n---\n".join(
        f"[User]\n{s.input}\n[Assistant]\n{s.ideal_output}" for s in shots
    )
