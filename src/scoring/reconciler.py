from __future__ import annotations

import copy
from dataclasses import replace
from typing import Any, Optional

from src.errors import InputError
from src.models import CompliancePayload
from src.scoring.engine import HIGH_RECYCLED_THRESHOLD, microplastic_flag, rescore


def reconcile(edited: CompliancePayload, previous: Optional[CompliancePayload] = None) -> CompliancePayload:
    """Restore the cross-framework invariants after an edit, then re-score.

    ``previous`` is the payload before the edit. Without it every
    AGEC field counts as changed, so AGEC drives the ISO 59040 mirrors.
    """
    material = edited.agec.material_analysis
    hazards = edited.agec.hazardous_substances
    pcds = edited.pcds

    def changed(getter) -> bool:
        return previous is None or getter(edited) != getter(previous)

    synthetic_changed = changed(lambda p: p.agec.material_analysis.synthetic_fiber_percentage)
    svhc_changed = changed(lambda p: p.agec.hazardous_substances.contains_svhc)
    recycled_changed = changed(lambda p: p.agec.material_analysis.recycled_content_percentage)
    reach_changed = previous is not None and (
        edited.pcds.statement_2301_reach_compliant != previous.pcds.statement_2301_reach_compliant
    )

    # The microplastic flag is never trusted as stored.
    if synthetic_changed or material.microplastic_warning_required != microplastic_flag(
        material.synthetic_fiber_percentage
    ):
        material = replace(
            material, microplastic_warning_required=microplastic_flag(material.synthetic_fiber_percentage)
        )

    if svhc_changed:
        pcds = replace(pcds, statement_2301_reach_compliant=not hazards.contains_svhc)

    if recycled_changed:
        pcds = replace(pcds, statement_2503_post_consumer=material.recycled > HIGH_RECYCLED_THRESHOLD)

    # When both sides were edited the AGEC flag already won above, so this is a no-op.
    if reach_changed:
        hazards = replace(hazards, contains_svhc=not pcds.statement_2301_reach_compliant)

    agec = replace(edited.agec, material_analysis=material, hazardous_substances=hazards)
    return rescore(replace(edited, agec=agec, pcds=pcds))


def apply_edit(payload: CompliancePayload, path: str, value: Any) -> CompliancePayload:
    """Set one dotted wire-key path and return a new, un-reconciled payload."""
    keys = [key for key in path.split(".") if key]
    if not keys or keys[0] == "meta_scoring":
        raise InputError(f"Field is not editable: {path}")

    document = copy.deepcopy(payload.to_dict())
    node: Any = document
    for key in keys[:-1]:
        if not isinstance(node, dict) or not isinstance(node.get(key), dict):
            raise InputError(f"Unknown field path: {path}")
        node = node[key]
    if not isinstance(node, dict) or keys[-1] not in node:
        raise InputError(f"Unknown field path: {path}")
    node[keys[-1]] = value
    return CompliancePayload.from_dict(document, fallback_name=payload.identity.name)
