"""
Opportunity extraction from discovery agent output.

Expected template, one block per company, blocks separated by ``---``::

    **Opportunity: [TICKER] - [Company Name]**
    - Thesis Alignment: 85
    - Investment Thesis: one sentence
    - Key Metrics: P/E: 8.2, P/B: 0.9, Market Cap: $2.4B
    - Risk Level: medium
    ---

If no block header matches, a looser pass picks up lines that start with a
bracketed ticker (``[ABC] Some Company``) and gives them default scores.
"""

import logging
import re
from typing import Dict, List, Optional

from core.config.constants import CONSTANTS
from core.pipeline.models import Opportunity, RiskLevel, Strategy

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(
    r"\*\*Opportunity:\s*\[([A-Z]{1,5})\]\s*-\s*\[([^\]]+)\]\*\*"
)
FALLBACK_PATTERN = re.compile(r"\[([A-Z]{1,5})\]\s+(.+?)(?=\n|$)")

ALIGNMENT_PATTERN = re.compile(r"Thesis Alignment:\s*[\[(]?\s*(\d{1,3})")
THESIS_PATTERN = re.compile(r"Investment Thesis:\s*([^\n-]+)")
PE_PATTERN = re.compile(r"P/E:\s*([\d.]+)")
PB_PATTERN = re.compile(r"P/B:\s*([\d.]+)")
MARKET_CAP_PATTERN = re.compile(r"Market Cap:\s*\$?([\d.]+)\s*([BM]?)")
RISK_PATTERN = re.compile(r"Risk Level:\s*(low|medium|high)", re.IGNORECASE)

SECTION_SEPARATOR = "---"


def _to_float(raw: str) -> Optional[float]:
    try:
        return float(raw)
    except ValueError:
        return None


def _section_after(text: str, start: int) -> str:
    """Text of one opportunity block: up to the next separator or a fixed window."""
    end = text.find(SECTION_SEPARATOR, start)
    if end == -1:
        end = start + CONSTANTS.extraction.SECTION_WINDOW_CHARS
    return text[start:end]


def _parse_metrics(section: str) -> Dict[str, float]:
    metrics: Dict[str, float] = {}

    match = PE_PATTERN.search(section)
    if match:
        value = _to_float(match.group(1))
        if value is not None:
            metrics["pe"] = value

    match = PB_PATTERN.search(section)
    if match:
        value = _to_float(match.group(1))
        if value is not None:
            metrics["pb"] = value

    # Market cap is kept in millions
    match = MARKET_CAP_PATTERN.search(section)
    if match:
        value = _to_float(match.group(1))
        if value is not None:
            metrics["market_cap"] = value * 1000 if match.group(2) == "B" else value

    return metrics


def _parse_section(
    ticker: str,
    company_name: str,
    section: str,
    strategy: Strategy,
) -> Opportunity:
    score = CONSTANTS.extraction.DEFAULT_SCORE
    match = ALIGNMENT_PATTERN.search(section)
    if match:
        score = max(0, min(100, int(match.group(1))))

    match = THESIS_PATTERN.search(section)
    thesis = match.group(1).strip() if match else ""
    if not thesis:
        thesis = f"Discovered via {strategy.value} thesis analysis"

    match = RISK_PATTERN.search(section)
    risk = RiskLevel(match.group(1).lower()) if match else RiskLevel.MEDIUM

    return Opportunity(
        ticker=ticker,
        company_name=company_name.strip(),
        thesis=thesis,
        score=score,
        risk_level=risk,
        strategy=strategy,
        metrics=_parse_metrics(section),
    )


def _extract_primary(text: str, strategy: Strategy) -> List[Opportunity]:
    drafts = []
    for match in HEADER_PATTERN.finditer(text):
        section = _section_after(text, match.start())
        drafts.append(_parse_section(match.group(1), match.group(2), section, strategy))
    return drafts


def _extract_fallback(text: str, strategy: Strategy, max_count: int) -> List[Opportunity]:
    drafts = []
    for match in FALLBACK_PATTERN.finditer(text):
        if len(drafts) >= max_count:
            break
        drafts.append(Opportunity(
            ticker=match.group(1),
            company_name=match.group(2).strip(),
            thesis=f"Discovered via {strategy.value} thesis analysis",
            score=CONSTANTS.extraction.DEFAULT_SCORE,
            risk_level=RiskLevel.MEDIUM,
            strategy=strategy,
        ))
    return drafts


def _dedupe(drafts: List[Opportunity]) -> List[Opportunity]:
    """First occurrence of a ticker wins; it keeps the highest score seen."""
    by_ticker: Dict[str, Opportunity] = {}
    for draft in drafts:
        existing = by_ticker.get(draft.ticker)
        if existing is None:
            by_ticker[draft.ticker] = draft
        elif draft.score > existing.score:
            by_ticker[draft.ticker] = existing.with_score(draft.score)
    return list(by_ticker.values())


def extract_opportunities(
    text: str,
    strategy: Strategy = Strategy.GENERAL,
    max_count: Optional[int] = None,
) -> List[Opportunity]:
    """
    Turn one discovery response into Opportunity drafts.

    Args:
        text: Raw discovery agent output
        strategy: Strategy tag stamped on every draft
        max_count: Cap on returned drafts (defaults to EXTRACT_MAX_DRAFTS)

    Returns:
        Drafts sorted by score descending, unique by ticker. Empty when
        nothing in the text looks like a ticker.
    """
    strategy = Strategy.parse(strategy)
    limit = max_count if max_count is not None else CONSTANTS.extraction.MAX_DRAFTS
    if not text or limit <= 0:
        return []

    drafts = _extract_primary(text, strategy)
    if not drafts:
        drafts = _extract_fallback(text, strategy, limit)
        if drafts:
            logger.info(
                f"[DISCOVERY] Template not matched, fallback found {len(drafts)} tickers"
            )

    drafts = _dedupe(drafts)
    drafts.sort(key=lambda o: o.score, reverse=True)
    return drafts[:limit]
