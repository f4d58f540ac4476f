"""GCP Committed Use Discount JSON exports -> GCPImport records.

Accepts the array produced by ``gcloud compute commitments list --format=json``
(or a single object). ``resources`` entries of type VCPU / MEMORY carry the cpu
and memory amounts as strings of integers.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..errors import ParseError
from ..models import GCPImport
from .base import JsonSource, ParseOutcome, load_json, opt_str, parse_int

_LOGGER = logging.getLogger(__name__)

RESOURCE_FIELDS = {"VCPU": "cpu", "MEMORY": "memory_mb"}


def _resource_amounts(resources: Any, *, row: Optional[int]) -> Dict[str, Optional[int]]:
    amounts: Dict[str, Optional[int]] = {"cpu": None, "memory_mb": None}
    if resources is None:
        return amounts
    if not isinstance(resources, list):
        raise ParseError("resources", resources, row=row)
    for res in resources:
        if not isinstance(res, dict):
            continue
        rtype = res.get("type")
        amount = res.get("amount")
        if not rtype or amount is None:
            continue
        target = RESOURCE_FIELDS.get(str(rtype).upper())
        if target is None:
            continue
        amounts[target] = parse_int(amount, target, row=row)
    return amounts


def parse_gcp_object(obj: Dict[str, Any], *, row: Optional[int] = None) -> GCPImport:
    """Parse a single CUD object. Raises ParseError on the first bad field."""
    if not isinstance(obj, dict):
        raise ParseError("commitment", obj, row=row, message=f"GCP CUD entry must be an object (row {row})")
    name = opt_str(obj.get("name"))
    if name is None:
        raise ParseError("name", obj.get("name"), row=row)

    amounts = _resource_amounts(obj.get("resources"), row=row)
    return GCPImport(
        name=name,
        id=opt_str(obj.get("id")),
        plan=opt_str(obj.get("plan")),
        region=opt_str(obj.get("region")),
        type=opt_str(obj.get("type")),
        cpu=amounts["cpu"],
        memory_mb=amounts["memory_mb"],
        start_timestamp=opt_str(obj.get("startTimestamp")),
        end_timestamp=opt_str(obj.get("endTimestamp")),
        status=opt_str(obj.get("status")),
    )


def parse_gcp_imports(source: JsonSource) -> ParseOutcome:
    outcome = ParseOutcome()
    try:
        data = load_json(source)
    except ParseError as exc:
        outcome.errors.append(exc)
        return outcome

    entries: List[Any] = [data] if isinstance(data, dict) else data
    if not isinstance(entries, list):
        outcome.errors.append(
            ParseError("json", data, message="GCP CUD input must be a JSON array or object")
        )
        return outcome

    for i, entry in enumerate(entries, start=1):
        try:
            outcome.records.append(parse_gcp_object(entry, row=i))
        except ParseError as exc:
            outcome.errors.append(exc)

    _LOGGER.debug("Parsed %d GCP CUDs (%d errors)", len(outcome.records), len(outcome.errors))
    return outcome
