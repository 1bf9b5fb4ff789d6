"""
Asset rights metadata: a fingerprint-keyed JSON library index and an
advisory check that turns licence / expiry / market limits into
warnings and footer notes.  Never blocks rendering.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from utils.log_config import get_logger

log = get_logger(__name__)

WARN_NO_META = "ℹ 素材の出典・権利情報が未登録です。"
NOTE_NO_META = "※素材の出典・権利者・ライセンスを記録してください。"
WARN_RESTRICTED = "⚠ ライセンスが制限付きです。用途や媒体に注意。"
WARN_EDITORIAL = "⚠ エディトリアル専用素材です。商用利用不可の可能性。"
WARN_EXPIRED = "⚠ ライセンス期限切れの可能性があります。"


class License(str, Enum):
    COMMERCIAL_OK = "commercial-ok"
    EDITORIAL     = "editorial"
    RESTRICTED    = "restricted"
    UNKNOWN       = "unknown"


class AssetMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source_url:      Optional[str]       = None
    owner:           Optional[str]       = None
    license:         License             = License.UNKNOWN
    expires_at:      Optional[datetime]  = None
    allowed_markets: Optional[List[str]] = None
    note:            Optional[str]       = None


@dataclass
class RightsResult:
    warnings: List[str] = field(default_factory=list)
    notes:    List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"warnings": list(self.warnings), "notes": list(self.notes)}


def fingerprint(file: Union[str, Path]) -> str:
    h = hashlib.sha1()
    with open(file, "rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 16), b""):
            h.update(chunk)
    return h.hexdigest()


def _read_index(index_path: Path) -> Dict[str, Any]:
    if not index_path.exists():
        return {}
    try:
        return json.loads(index_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.warning("Asset library index unreadable (%s): %s", index_path, exc)
        return {}


def lookup_library(file: Union[str, Path], index_path: Union[str, Path]) -> Optional[AssetMeta]:
    """Metadata registered for *file*'s content hash, if any."""
    idx = _read_index(Path(index_path))
    if not idx:
        return None
    try:
        row = idx.get(fingerprint(file))
    except OSError as exc:
        log.debug("Cannot fingerprint %s: %s", file, exc)
        return None
    if not row or not row.get("meta"):
        return None
    try:
        return AssetMeta.model_validate(row["meta"])
    except ValidationError as exc:
        log.warning("Invalid asset metadata for %s: %s", file, exc)
        return None


def annotate_asset(
    file: Union[str, Path],
    index_path: Union[str, Path],
    **fields: Any,
) -> AssetMeta:
    """Merge *fields* into the library entry for *file* and persist it."""
    index_path = Path(index_path)
    file = Path(file).resolve()
    idx = _read_index(index_path)
    fp = fingerprint(file)

    row = idx.setdefault(fp, {
        "hash": fp,
        "path": file.as_posix(),
        "addedAt": datetime.now(timezone.utc).isoformat(),
    })
    merged = {**row.get("meta", {}), **AssetMeta(**fields).model_dump(
        by_alias=True, mode="json", exclude_unset=True)}
    meta = AssetMeta.model_validate(merged)
    row["meta"] = meta.model_dump(by_alias=True, mode="json", exclude_none=True)

    index_path.parent.mkdir(parents=True, exist_ok=True)
    index_path.write_text(json.dumps(idx, ensure_ascii=False, indent=2), encoding="utf-8")
    log.info("Annotated asset %s (%s)", file.name, fp[:12])
    return meta


def check_rights(
    meta: Optional[AssetMeta],
    market: str,
    now: Optional[datetime] = None,
) -> RightsResult:
    result = RightsResult()
    if meta is None:
        result.warnings.append(WARN_NO_META)
        result.notes.append(NOTE_NO_META)
        return result

    if meta.license is License.RESTRICTED:
        result.warnings.append(WARN_RESTRICTED)
    if meta.license is License.EDITORIAL:
        result.warnings.append(WARN_EDITORIAL)

    if meta.expires_at is not None:
        now = now or datetime.now(timezone.utc)
        expires = meta.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if expires < now:
            result.warnings.append(WARN_EXPIRED)

    if meta.allowed_markets is not None and market not in meta.allowed_markets:
        result.warnings.append(f"⚠ この市場（{market}）では未許可の可能性があります。")

    if meta.source_url:
        result.notes.append(f"※素材出典: {meta.source_url}")
    if meta.owner:
        result.notes.append(f"© {meta.owner}")
    if meta.note:
        result.notes.append(meta.note)
    return result
