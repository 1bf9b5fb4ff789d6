"""Market-specific copy checks: forbidden claims and claims needing evidence."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern

from utils.log_config import get_logger

log = get_logger(__name__)

MAX_TITLE_LEN = 28

WARN_FORBIDDEN = "⚠ 禁止/過度表現が含まれます。表現の見直しを。"
NOTE_FORBIDDEN = "※根拠不要な断定的表現・誇大表現は避けてください。"
WARN_EVIDENCE = "⚠ 根拠が必要な表現（No.1/最安/ランキング等）が含まれますが、根拠が未入力です。"
NOTE_EVIDENCE = "※出典・期間・条件を注記で明示してください。"
WARN_LENGTH = "ℹ 見出しが長めです。視認性低下に注意。"


@dataclass(frozen=True)
class MarketRules:
    forbidden:      List[Pattern]
    needs_evidence: List[Pattern]
    base_notes:     List[str] = field(default_factory=list)


@dataclass
class ComplianceResult:
    title:    str
    notes:    List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    def to_dict(self) -> Dict[str, object]:
        return {"title": self.title, "notes": list(self.notes), "warnings": list(self.warnings)}


COMMON_FORBIDDEN = [
    re.compile(r"100%", re.IGNORECASE),
    re.compile(r"永久|完全無料|無制限保証"),
    re.compile(r"世界一|日本一|業界一|業界最安"),
]
COMMON_NEEDS_EVIDENCE = [
    re.compile(r"No\.?1", re.IGNORECASE),
    re.compile(r"ランキング.?1位"),
    re.compile(r"最安値|公式最安"),
]

MARKETS: Dict[str, MarketRules] = {
    "generic": MarketRules(COMMON_FORBIDDEN, COMMON_NEEDS_EVIDENCE),
    "r10": MarketRules(
        COMMON_FORBIDDEN + [re.compile(r"医療効果|痩せる|絶対", re.IGNORECASE)],
        COMMON_NEEDS_EVIDENCE + [re.compile(r"レビュー高評価|○冠達成")],
        ["※楽天市場の表記ルールに配慮してください。根拠は出典・期間・条件を明記。"],
    ),
    "yss": MarketRules(
        COMMON_FORBIDDEN + [re.compile(r"誇大|完全無欠", re.IGNORECASE)],
        COMMON_NEEDS_EVIDENCE + [re.compile(r"売上第1位|話題沸騰")],
        ["※Yahoo!ショッピングの表記ルールに配慮。根拠は出典・期間・条件を明記。"],
    ),
}


def check_compliance(
    title: str,
    market: str = "generic",
    evidence: Optional[str] = None,
) -> ComplianceResult:
    rules = MARKETS.get(market)
    if rules is None:
        log.debug("Unknown market %r, using generic rules", market)
        rules = MARKETS["generic"]

    result = ComplianceResult(title=title, notes=list(rules.base_notes))

    if any(p.search(title) for p in rules.forbidden):
        result.warnings.append(WARN_FORBIDDEN)
        result.notes.append(NOTE_FORBIDDEN)

    claims = any(p.search(title) for p in rules.needs_evidence)
    evidence = (evidence or "").strip()
    if claims and not evidence:
        result.warnings.append(WARN_EVIDENCE)
        result.notes.append(NOTE_EVIDENCE)
    elif claims:
        result.notes.append(f"※根拠：{evidence}")

    if len(title) > MAX_TITLE_LEN:
        result.warnings.append(WARN_LENGTH)

    if result.warnings:
        log.info("Compliance [%s]: %d warning(s) for %r", market, len(result.warnings), title[:30])
    return result
