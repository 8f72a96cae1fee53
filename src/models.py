"""Value types shared by the normalizer, dispatcher, scoring engine and aggregator.

Everything here is immutable. Edits produce new values through
``dataclasses.replace`` so a payload held by one caller never changes
underneath another.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

_NULL_STRINGS = {"", "null", "none", "unknown", "n/a", "na", "-"}


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _NULL_STRINGS:
        return None
    return text


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "y", "1", "oui")
    return False


def _as_percent(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:[.,]\d+)?", value)
        if not match:
            return None
        value = match.group(0).replace(",", ".")
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return min(100.0, max(0.0, number))


def _as_int_score(value: Any) -> int:
    percent = _as_percent(value)
    return int(percent) if percent is not None else 0


def _str_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    items = []
    for item in value:
        text = _opt_str(item)
        if text is not None:
            items.append(text)
    return tuple(items)


def _section(doc: Any, key: str) -> Dict[str, Any]:
    if not isinstance(doc, dict):
        return {}
    value = doc.get(key)
    return value if isinstance(value, dict) else {}


# --- records -------------------------------------------------------------


@dataclass(frozen=True)
class Record:
    """One product description: ordered (field, value) pairs.

    A free-text record is a single pair with an empty field name.
    """

    fields: Tuple[Tuple[str, str], ...]
    name: str

    @classmethod
    def from_text(cls, text: str, name: Optional[str] = None) -> "Record":
        stripped = text.strip()
        if name is None:
            first_line = stripped.splitlines()[0] if stripped else ""
            name = first_line.strip()[:50] or "Unknown Product"
        return cls(fields=(("", stripped),), name=name)

    @property
    def text(self) -> str:
        lines = []
        for key, value in self.fields:
            lines.append(f"{key}: {value}" if key else value)
        return "\n".join(lines)


# --- payload -------------------------------------------------------------


@dataclass(frozen=True)
class ProductIdentity:
    name: str
    gtin: Optional[str] = None
    sku: Optional[str] = None


@dataclass(frozen=True)
class Traceability:
    weaving_knitting_country: Optional[str] = None
    dyeing_printing_country: Optional[str] = None
    manufacturing_country: Optional[str] = None

    @property
    def countries(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        return (
            self.weaving_knitting_country,
            self.dyeing_printing_country,
            self.manufacturing_country,
        )

    @property
    def is_complete(self) -> bool:
        return all(self.countries)


@dataclass(frozen=True)
class Recyclability:
    is_majority_recyclable: bool = False
    blockers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MaterialAnalysis:
    synthetic_fiber_percentage: Optional[float] = None
    microplastic_warning_required: bool = False
    recycled_content_percentage: Optional[float] = None

    @property
    def synthetic(self) -> float:
        return self.synthetic_fiber_percentage or 0.0

    @property
    def recycled(self) -> float:
        return self.recycled_content_percentage or 0.0


@dataclass(frozen=True)
class HazardousSubstances:
    contains_svhc: bool = False
    substance_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AgecCompliance:
    traceability: Traceability = field(default_factory=Traceability)
    recyclability: Recyclability = field(default_factory=Recyclability)
    material_analysis: MaterialAnalysis = field(default_factory=MaterialAnalysis)
    hazardous_substances: HazardousSubstances = field(default_factory=HazardousSubstances)


@dataclass(frozen=True)
class Iso59040Pcds:
    statement_2503_post_consumer: bool = False
    statement_2301_reach_compliant: bool = False
    statement_3000_repairable: bool = False
    statement_5032_closed_loop: bool = False

    @property
    def statements(self) -> Tuple[bool, bool, bool, bool]:
        return (
            self.statement_2503_post_consumer,
            self.statement_2301_reach_compliant,
            self.statement_3000_repairable,
            self.statement_5032_closed_loop,
        )


@dataclass(frozen=True)
class MetaScoring:
    data_completeness_score: int = 0
    circularity_performance_score: int = 0
    gap_analysis_advice: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CompliancePayload:
    identity: ProductIdentity
    agec: AgecCompliance = field(default_factory=AgecCompliance)
    pcds: Iso59040Pcds = field(default_factory=Iso59040Pcds)
    scoring: MetaScoring = field(default_factory=MetaScoring)

    @classmethod
    def from_dict(cls, doc: Dict[str, Any], fallback_name: str = "Unknown Product") -> "CompliancePayload":
        identity = _section(doc, "product_identity")
        agec = _section(doc, "agec_compliance")
        pcds = _section(doc, "iso_59040_pcds")
        scoring = _section(doc, "meta_scoring")

        traceability = _section(agec, "traceability")
        recyclability = _section(agec, "recyclability")
        material = _section(agec, "material_analysis")
        hazards = _section(agec, "hazardous_substances")
        inputs = _section(pcds, "section_2_inputs")
        better_use = _section(pcds, "section_3_better_use")
        end_of_life = _section(pcds, "section_5_end_of_life")

        return cls(
            identity=ProductIdentity(
                name=_opt_str(identity.get("name")) or fallback_name,
                gtin=_opt_str(identity.get("gtin")),
                sku=_opt_str(identity.get("sku")),
            ),
            agec=AgecCompliance(
                traceability=Traceability(
                    weaving_knitting_country=_opt_str(traceability.get("weaving_knitting_country")),
                    dyeing_printing_country=_opt_str(traceability.get("dyeing_printing_country")),
                    manufacturing_country=_opt_str(traceability.get("manufacturing_country")),
                ),
                recyclability=Recyclability(
                    is_majority_recyclable=_as_bool(recyclability.get("is_majority_recyclable")),
                    blockers=_str_tuple(recyclability.get("blockers")),
                ),
                material_analysis=MaterialAnalysis(
                    synthetic_fiber_percentage=_as_percent(material.get("synthetic_fiber_percentage")),
                    microplastic_warning_required=_as_bool(material.get("microplastic_warning_required")),
                    recycled_content_percentage=_as_percent(material.get("recycled_content_percentage")),
                ),
                hazardous_substances=HazardousSubstances(
                    contains_svhc=_as_bool(hazards.get("contains_svhc")),
                    substance_names=_str_tuple(hazards.get("substance_names")),
                ),
            ),
            pcds=Iso59040Pcds(
                statement_2503_post_consumer=_as_bool(inputs.get("statement_2503_post_consumer")),
                statement_2301_reach_compliant=_as_bool(inputs.get("statement_2301_reach_compliant")),
                statement_3000_repairable=_as_bool(better_use.get("statement_3000_repairable")),
                statement_5032_closed_loop=_as_bool(end_of_life.get("statement_5032_closed_loop")),
            ),
            scoring=MetaScoring(
                data_completeness_score=_as_int_score(scoring.get("data_completeness_score")),
                circularity_performance_score=_as_int_score(scoring.get("circularity_performance_score")),
                gap_analysis_advice=_str_tuple(scoring.get("gap_analysis_advice")),
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        trace = self.agec.traceability
        recyc = self.agec.recyclability
        material = self.agec.material_analysis
        hazards = self.agec.hazardous_substances
        return {
            "product_identity": {
                "name": self.identity.name,
                "gtin": self.identity.gtin,
                "sku": self.identity.sku,
            },
            "agec_compliance": {
                "traceability": {
                    "weaving_knitting_country": trace.weaving_knitting_country,
                    "dyeing_printing_country": trace.dyeing_printing_country,
                    "manufacturing_country": trace.manufacturing_country,
                },
                "recyclability": {
                    "is_majority_recyclable": recyc.is_majority_recyclable,
                    "blockers": list(recyc.blockers),
                },
                "material_analysis": {
                    "synthetic_fiber_percentage": material.synthetic_fiber_percentage,
                    "microplastic_warning_required": material.microplastic_warning_required,
                    "recycled_content_percentage": material.recycled_content_percentage,
                },
                "hazardous_substances": {
                    "contains_svhc": hazards.contains_svhc,
                    "substance_names": list(hazards.substance_names),
                },
            },
            "iso_59040_pcds": {
                "section_2_inputs": {
                    "statement_2503_post_consumer": self.pcds.statement_2503_post_consumer,
                    "statement_2301_reach_compliant": self.pcds.statement_2301_reach_compliant,
                },
                "section_3_better_use": {
                    "statement_3000_repairable": self.pcds.statement_3000_repairable,
                },
                "section_5_end_of_life": {
                    "statement_5032_closed_loop": self.pcds.statement_5032_closed_loop,
                },
            },
            "meta_scoring": {
                "data_completeness_score": self.scoring.data_completeness_score,
                "circularity_performance_score": self.scoring.circularity_performance_score,
                "gap_analysis_advice": list(self.scoring.gap_analysis_advice),
            },
        }


# --- outcomes ------------------------------------------------------------


@dataclass(frozen=True)
class Success:
    payload: CompliancePayload
    record: Optional[Record] = None
    ok = True


@dataclass(frozen=True)
class Failure:
    reason: str
    detail: str = ""
    kind: str = "transport"
    record: Optional[Record] = None
    ok = False

    @property
    def message(self) -> str:
        return f"{self.reason}: {self.detail}" if self.detail else self.reason


ExtractionOutcome = Union[Success, Failure]


@dataclass
class DispatchResult:
    outcomes: List[ExtractionOutcome]
    truncated: bool
    wave_sizes: List[int] = field(default_factory=list)
    timed_out: bool = False


@dataclass
class BatchResult:
    outcomes: List[ExtractionOutcome]
    truncated: bool
    total: int
    timed_out: bool = False

    @property
    def processed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def successes(self) -> List[Success]:
        return [outcome for outcome in self.outcomes if isinstance(outcome, Success)]

    @property
    def failures(self) -> List[Failure]:
        return [outcome for outcome in self.outcomes if isinstance(outcome, Failure)]


# --- batch statistics ----------------------------------------------------


@dataclass(frozen=True)
class BatchStats:
    total_products: int
    avg_score: int
    compliant_count: int
    partial_count: int
    to_review_count: int
    missing_traceability: int
    not_recyclable: int
    has_svhc: int
    needs_microplastic_warning: int
    has_recycled_content: int
    has_high_recycled: int
    pcds_completeness: int
    has_post_consumer_recycled: int
    has_reach_compliant: int
    has_repairable: int
    has_closed_loop: int
    blockers: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.__dict__)
        data["blockers"] = list(self.blockers)
        return data


@dataclass(frozen=True)
class BatchSummary:
    narrative: str
    strengths: Tuple[str, ...]
    improvements: Tuple[str, ...]
    action_plan: Tuple[str, ...]
    stats: Optional[BatchStats] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "narrative": self.narrative,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "action_plan": list(self.action_plan),
            "stats": self.stats.to_dict() if self.stats else None,
        }
