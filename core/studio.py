"""
End-to-end banner creation for one tenant:

terms → compliance → title shaping → palette → rights → render → learn
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.settings import AppConfig, cfg
from copywriting.compliance import ComplianceResult, check_compliance
from copywriting.learning import update_term_stats
from copywriting.shaping import shape_title
from copywriting.terms import TermDictionary, apply_terms, load_terms, unprotect
from core.compositor import BannerCompositor, ProfileSource, resolve_profile
from core.models import BannerRequest
from core.rights import AssetMeta, RightsResult, check_rights, lookup_library
from imaging.palette import pick_harmonious_colors
from storage.store import DocumentStore
from utils.exceptions import ConfigurationError, StoreError
from utils.log_config import get_logger

log = get_logger(__name__)


@dataclass
class BannerResult:
    path:       Path
    title:      str
    compliance: ComplianceResult
    rights:     Optional[RightsResult]   = None
    colors:     Optional[Dict[str, str]] = None
    notes:      List[str]                = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "title": self.title,
            "compliance": self.compliance.to_dict(),
            "rights": self.rights.to_dict() if self.rights else None,
            "colors": self.colors,
            "notes": list(self.notes),
        }


class BannerStudio:
    """Ties copywriting, rights and rendering together per tenant."""

    def __init__(
        self,
        conf: Optional[AppConfig] = None,
        store: Optional[DocumentStore] = None,
        compositor: Optional[BannerCompositor] = None,
    ) -> None:
        self.cfg = conf or cfg
        self.store = store
        self.compositor = compositor or BannerCompositor(self.cfg, store=store)

    def _terms(self, tenant: Optional[str]) -> TermDictionary:
        if not tenant or self.store is None:
            return TermDictionary()
        try:
            return load_terms(self.store, tenant)
        except StoreError as exc:
            log.warning("Terms unavailable for %s: %s", tenant, exc)
            return TermDictionary()

    def _asset(self, request: BannerRequest, asset_meta: Optional[AssetMeta]) -> Optional[AssetMeta]:
        return lookup_library(request.image, self.cfg.paths.asset_library) or asset_meta

    def create(
        self,
        request: BannerRequest,
        profile: ProfileSource,
        evidence: Optional[str] = None,
        summarize: bool = True,
        title_max: Optional[int] = None,
        title_lines: Optional[int] = None,
        palette_mode: Optional[str] = None,
        asset_meta: Optional[AssetMeta] = None,
        out_path: Optional[Path] = None,
    ) -> BannerResult:
        profile = resolve_profile(profile)

        protected = apply_terms(request.title, self._terms(request.tenant))
        compliance = check_compliance(unprotect(protected), request.market, evidence)

        if summarize:
            title = unprotect(shape_title(protected, max_chars=title_max,
                                          max_lines=title_lines, conf=self.cfg.text))
        else:
            title = unprotect(protected)

        colors = None
        if palette_mode and request.image:
            try:
                colors = pick_harmonious_colors(request.image, profile.colors.primary, palette_mode)
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc

        asset: Optional[AssetMeta] = None
        rights: Optional[RightsResult] = None
        if request.image:
            asset = self._asset(request, asset_meta)
            rights = check_rights(asset, request.market)
        notes = list(compliance.notes) + (list(rights.notes) if rights else [])

        final = dataclasses.replace(request, title=title)
        meta = {
            "template": final.template,
            "tenant": final.tenant,
            "market": final.market,
            "title": title,
            "originalTitle": request.title,
            "compliance": compliance.to_dict(),
            "rights": rights.to_dict() if rights else None,
            "image": request.image,
            "asset": asset.model_dump(by_alias=True, mode="json", exclude_none=True) if asset else None,
        }
        path = self.compositor.generate(final, profile, out_path=out_path, notes=notes,
                                        meta=meta, colors_override=colors)

        if request.tenant and self.store is not None:
            try:
                update_term_stats(self.store, request.tenant, request.title, title)
            except StoreError as exc:
                log.warning("Term stats not updated for %s: %s", request.tenant, exc)

        return BannerResult(path, title, compliance, rights, colors, notes)
