"""
Catalog banners from a spreadsheet: one grid cell per CSV row
(``image, title, price, badge``), at most eight cells.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple, Union

import pandas as pd

from config.settings import AppConfig, cfg
from core.compositor import BannerCompositor, ProfileSource
from core.models import BannerRequest, CatalogItem
from storage.store import DocumentStore
from utils.exceptions import ConfigurationError
from utils.log_config import get_logger

log = get_logger(__name__)

CATALOG_TEMPLATE = "catalog-grid"
CATALOG_COLUMNS = ("image", "title", "price", "badge")
MAX_ITEMS = 8


def read_catalog_csv(path: Union[str, Path], limit: int = MAX_ITEMS) -> List[CatalogItem]:
    """
    First *limit* rows of *path* as catalog items.  Relative image paths
    are resolved against the CSV's folder; blank cells become ``None``.
    """
    path = Path(path)
    try:
        df = pd.read_csv(path, dtype=str, skip_blank_lines=True)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ConfigurationError(f"cannot read catalog CSV {path}: {exc}") from exc

    df.columns = [str(c).strip().lower() for c in df.columns]
    if not any(c in df.columns for c in CATALOG_COLUMNS):
        raise ConfigurationError(
            f"catalog CSV {path.name} needs at least one of: {', '.join(CATALOG_COLUMNS)}")

    df = df.reindex(columns=list(CATALOG_COLUMNS)).head(limit).fillna("")

    items = []
    for raw in df.to_dict("records"):
        row = {k: str(v).strip() or None for k, v in raw.items()}
        image = row["image"]
        if image and not Path(image).is_absolute():
            image = str(path.parent / image)
        items.append(CatalogItem(image=image, title=row["title"], price=row["price"], badge=row["badge"]))
    log.debug("Read %d catalog row(s) from %s", len(items), path.name)
    return items


def render_catalog(
    csv_path: Union[str, Path],
    profile: ProfileSource,
    size: Optional[Tuple[int, int]] = None,
    title: str = "",
    tenant: Optional[str] = None,
    out_path: Optional[Path] = None,
    conf: Optional[AppConfig] = None,
    store: Optional[DocumentStore] = None,
) -> Path:
    conf = conf or cfg
    items = read_catalog_csv(csv_path)
    request = BannerRequest(
        title=title,
        items=items,
        template=CATALOG_TEMPLATE,
        size=size or conf.render.default_size,
        tenant=tenant,
    )
    out = out_path or conf.paths.output_dir / f"catalog_{request.width}x{request.height}.png"
    meta = {"template": CATALOG_TEMPLATE, "tenant": tenant, "title": title, "items": len(items)}
    return BannerCompositor(conf, store=store).generate(request, profile, out_path=out, meta=meta)
