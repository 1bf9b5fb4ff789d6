"""
Asset ledger: one CSV row per rendered banner, collected from the JSON
sidecars in the output folder (title, template, rights and licence).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from PIL import Image

from utils.log_config import get_logger

log = get_logger(__name__)

LEDGER_COLUMNS = [
    "file", "tenant", "market", "template", "title", "createdAt", "bytes", "dimensions",
    "image", "license", "owner", "sourceUrl", "expiresAt", "warnings",
]


def _row(sidecar: Path, meta: Dict[str, Any]) -> Dict[str, Any]:
    png = sidecar.with_suffix(".png")
    asset = meta.get("asset") or {}
    warnings = list((meta.get("compliance") or {}).get("warnings", []))
    warnings += (meta.get("rights") or {}).get("warnings", [])

    row = {
        "file": png.name,
        "tenant": meta.get("tenant") or "",
        "market": meta.get("market") or "generic",
        "template": meta.get("template") or "unknown",
        "title": meta.get("title") or "",
        "createdAt": "",
        "bytes": 0,
        "dimensions": "",
        "image": meta.get("image") or "",
        "license": asset.get("license", "unknown" if meta.get("image") else ""),
        "owner": asset.get("owner", ""),
        "sourceUrl": asset.get("sourceUrl", ""),
        "expiresAt": asset.get("expiresAt", ""),
        "warnings": " / ".join(warnings),
    }
    if png.exists():
        stat = png.stat()
        row["bytes"] = stat.st_size
        row["createdAt"] = datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat()
        try:
            with Image.open(png) as im:
                row["dimensions"] = f"{im.width}x{im.height}"
        except OSError:
            row["dimensions"] = "unknown"
    return row


def collect_ledger(output_dir: Union[str, Path]) -> pd.DataFrame:
    """Every sidecar under *output_dir* as a frame with ``LEDGER_COLUMNS``."""
    output_dir = Path(output_dir)
    rows: List[Dict[str, Any]] = []
    for sidecar in sorted(output_dir.rglob("*.json")) if output_dir.is_dir() else []:
        try:
            meta = json.loads(sidecar.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log.warning("Skipping unreadable sidecar %s: %s", sidecar.name, exc)
            continue
        if not isinstance(meta, dict) or "template" not in meta:
            continue
        rows.append(_row(sidecar, meta))
    return pd.DataFrame(rows, columns=LEDGER_COLUMNS)


def export_ledger(output_dir: Union[str, Path], out_csv: Union[str, Path]) -> Optional[pd.DataFrame]:
    """
    Write the ledger for *output_dir* to *out_csv*.  Returns the frame,
    or ``None`` (and writes nothing) when no sidecar was found.
    """
    df = collect_ledger(output_dir)
    if df.empty:
        log.info("No sidecars under %s, ledger not written", output_dir)
        return None

    out_csv = Path(out_csv)
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out_csv, index=False, encoding="utf-8")
    log.info("Asset ledger exported: %s (%d record(s))", out_csv, len(df))
    return df
