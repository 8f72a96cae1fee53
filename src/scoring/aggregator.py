from __future__ import annotations

from typing import Dict, List, Sequence

from src.errors import InputError
from src.models import BatchStats, CompliancePayload
from src.scoring.engine import HIGH_RECYCLED_THRESHOLD, round_half_up

COMPLIANT_THRESHOLD = 80
PARTIAL_THRESHOLD = 50
DEFAULT_BLOCKER_LIMIT = 10


def _count(payloads: Sequence[CompliancePayload], predicate) -> int:
    return sum(1 for payload in payloads if predicate(payload))


def unique_blockers(payloads: Sequence[CompliancePayload], limit: int = DEFAULT_BLOCKER_LIMIT) -> List[str]:
    seen: Dict[str, None] = {}
    for payload in payloads:
        for blocker in payload.agec.recyclability.blockers:
            seen.setdefault(blocker, None)
    return list(seen)[:limit]


def aggregate(payloads: Sequence[CompliancePayload], blocker_limit: int = DEFAULT_BLOCKER_LIMIT) -> BatchStats:
    if not payloads:
        raise InputError("No products provided")

    total = len(payloads)
    scores = [payload.scoring.circularity_performance_score for payload in payloads]
    pcds_completeness = sum(sum(payload.pcds.statements) / 4 * 100 for payload in payloads) / total

    return BatchStats(
        total_products=total,
        avg_score=round_half_up(sum(scores) / total),
        compliant_count=sum(1 for s in scores if s >= COMPLIANT_THRESHOLD),
        partial_count=sum(1 for s in scores if PARTIAL_THRESHOLD <= s < COMPLIANT_THRESHOLD),
        to_review_count=sum(1 for s in scores if s < PARTIAL_THRESHOLD),
        missing_traceability=_count(payloads, lambda p: not p.agec.traceability.is_complete),
        not_recyclable=_count(payloads, lambda p: not p.agec.recyclability.is_majority_recyclable),
        has_svhc=_count(payloads, lambda p: p.agec.hazardous_substances.contains_svhc),
        needs_microplastic_warning=_count(
            payloads, lambda p: p.agec.material_analysis.microplastic_warning_required
        ),
        has_recycled_content=_count(payloads, lambda p: p.agec.material_analysis.recycled > 0),
        has_high_recycled=_count(
            payloads, lambda p: p.agec.material_analysis.recycled > HIGH_RECYCLED_THRESHOLD
        ),
        pcds_completeness=round_half_up(pcds_completeness),
        has_post_consumer_recycled=_count(payloads, lambda p: p.pcds.statement_2503_post_consumer),
        has_reach_compliant=_count(payloads, lambda p: p.pcds.statement_2301_reach_compliant),
        has_repairable=_count(payloads, lambda p: p.pcds.statement_3000_repairable),
        has_closed_loop=_count(payloads, lambda p: p.pcds.statement_5032_closed_loop),
        blockers=tuple(unique_blockers(payloads, blocker_limit)),
    )
