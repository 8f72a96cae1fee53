"""Deterministic scoring and gap advice.

The engine is the only place scores come from. It reads a payload and
returns new values; it never mutates its input.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Tuple

from src.models import CompliancePayload, MetaScoring

MICROPLASTIC_THRESHOLD = 50.0
HIGH_RECYCLED_THRESHOLD = 25.0

POINTS_PER_COUNTRY = 10
POINTS_RECYCLABLE = 25
POINTS_NO_SVHC = 20
POINTS_RECYCLED = 10
POINTS_HIGH_RECYCLED = 5
POINTS_NO_MICROPLASTIC = 10
MAX_SCORE = 100

TIER_HIGH = 0
TIER_MEDIUM = 1
TIER_LOW = 2

COUNTRY_STAGES = (
    ("weaving/knitting", "weaving_knitting_country"),
    ("dyeing/printing", "dyeing_printing_country"),
    ("manufacturing", "manufacturing_country"),
)


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def microplastic_flag(synthetic_percentage: Optional[float]) -> bool:
    return (synthetic_percentage or 0.0) > MICROPLASTIC_THRESHOLD


def composition_known(payload: CompliancePayload) -> bool:
    material = payload.agec.material_analysis
    return any(
        value is not None
        for value in (material.synthetic_fiber_percentage, material.recycled_content_percentage)
    )


def completeness_score(payload: CompliancePayload) -> int:
    checklist = [
        bool(payload.identity.name),
        payload.identity.gtin is not None,
        payload.identity.sku is not None,
        *[country is not None for country in payload.agec.traceability.countries],
        composition_known(payload),
    ]
    return round_half_up(sum(checklist) / len(checklist) * 100)


def performance_score(payload: CompliancePayload) -> int:
    agec = payload.agec
    score = 0
    score += POINTS_PER_COUNTRY * sum(1 for country in agec.traceability.countries if country)
    if agec.recyclability.is_majority_recyclable:
        score += POINTS_RECYCLABLE
    if not agec.hazardous_substances.contains_svhc:
        score += POINTS_NO_SVHC
    recycled = agec.material_analysis.recycled
    if recycled > 0:
        score += POINTS_RECYCLED
    if recycled > HIGH_RECYCLED_THRESHOLD:
        score += POINTS_HIGH_RECYCLED
    if not microplastic_flag(agec.material_analysis.synthetic_fiber_percentage):
        score += POINTS_NO_MICROPLASTIC
    return min(score, MAX_SCORE)


def _country_advice(stage: str, known: List[str]) -> str:
    context = f" Known countries: {', '.join(known)}." if known else " No production country is known."
    return (
        f"Incomplete traceability: missing {stage} country.{context} "
        f"ACTION: Ask the supplier for the {stage} country (ISO alpha-2). Reference: AGEC decree 2022-748."
    )


def _gaps(payload: CompliancePayload) -> List[Tuple[int, str]]:
    agec = payload.agec
    gaps: List[Tuple[int, str]] = []

    known = [country for country in agec.traceability.countries if country]
    for stage, attr in COUNTRY_STAGES:
        if getattr(agec.traceability, attr) is None:
            gaps.append((TIER_HIGH, _country_advice(stage, known)))

    if not agec.recyclability.is_majority_recyclable:
        blockers = "; ".join(agec.recyclability.blockers) or "no blocker identified"
        gaps.append(
            (
                TIER_MEDIUM,
                f"Recyclability not met ({blockers}). "
                "ACTION: Favour mono-material construction and separable trims, "
                "or route end-of-life through a take-back programme.",
            )
        )

    hazards = agec.hazardous_substances
    if hazards.contains_svhc:
        substances = ", ".join(hazards.substance_names) or "unspecified substances"
        gaps.append(
            (
                TIER_HIGH,
                f"Hazardous substances (SVHC) suspected: {substances}. "
                "ACTION: Request REACH test reports or an OEKO-TEX / bluesign certificate from the supplier.",
            )
        )

    material = agec.material_analysis
    if not composition_known(payload):
        gaps.append(
            (
                TIER_MEDIUM,
                "Missing material composition. ACTION: Collect fibre percentages from the product label or tech pack.",
            )
        )
    if material.recycled <= 0:
        gaps.append(
            (
                TIER_MEDIUM,
                "No recycled content declared. ACTION: Source recycled fibres or document existing recycled content.",
            )
        )
    if material.recycled <= HIGH_RECYCLED_THRESHOLD:
        gaps.append(
            (
                TIER_MEDIUM,
                f"Recycled content is {material.recycled:g}% (needs > 25%). "
                "ACTION: Increase the recycled share above 25% to claim ISO 59040 statement 2503.",
            )
        )
    if microplastic_flag(material.synthetic_fiber_percentage):
        gaps.append(
            (
                TIER_MEDIUM,
                f"Microplastic warning required: {material.synthetic:g}% synthetic fibres. "
                "ACTION: Display the microplastic release notice, or lower the synthetic share to 50% or less.",
            )
        )

    if payload.identity.gtin is None:
        gaps.append((TIER_LOW, "Missing GTIN. ACTION: Add the EAN/GTIN barcode to the product record."))
    if payload.identity.sku is None:
        gaps.append((TIER_LOW, "Missing SKU. ACTION: Add the internal reference to the product record."))

    return gaps


def gap_advice(payload: CompliancePayload) -> List[str]:
    # sorted() is stable: equal tiers keep check order.
    return [advice for _, advice in sorted(_gaps(payload), key=lambda gap: gap[0])]


def score(payload: CompliancePayload) -> MetaScoring:
    return MetaScoring(
        data_completeness_score=completeness_score(payload),
        circularity_performance_score=performance_score(payload),
        gap_analysis_advice=tuple(gap_advice(payload)),
    )


def rescore(payload: CompliancePayload) -> CompliancePayload:
    return replace(payload, scoring=score(payload))
