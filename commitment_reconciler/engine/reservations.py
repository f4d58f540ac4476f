"""Legacy generic reservations: whole-list overwrite for an organization.

There is no per-record diffing here; the control plane replaces the
organization's reservation list with whatever is sent. An empty list clears it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Sequence

from ..api.base import InventoryAPI
from ..api.payloads import generic_reservation_payload
from ..config import DEFAULT_CALL_TIMEOUT
from ..errors import APIError, TransportError
from ..models import GenericReservation

_LOGGER = logging.getLogger(__name__)


async def _with_deadline(coro, timeout: float, what: str):
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        raise TransportError(f"{what}: deadline of {timeout}s exceeded") from None


async def overwrite_generic_reservations(
    api: InventoryAPI,
    organization_id: str,
    reservations: Sequence[GenericReservation],
    *,
    call_timeout: float = DEFAULT_CALL_TIMEOUT,
) -> int:
    """Replace the organization's reservations. Returns the number sent."""
    items = [generic_reservation_payload(r) for r in reservations]
    what = f"overwrite reservations for {organization_id}"
    resp = await _with_deadline(api.overwrite_reservations(organization_id, items), call_timeout, what)
    if resp.status_code != 200:
        raise APIError(resp.status_code, resp.body, expected=200, context=what)
    _LOGGER.info("Overwrote %d reservation(s) for organization %s", len(items), organization_id)
    return len(items)


async def fetch_generic_reservations(
    api: InventoryAPI,
    organization_id: str,
    *,
    call_timeout: float = DEFAULT_CALL_TIMEOUT,
) -> List[Dict[str, Any]]:
    """Current reservations as flat snake_case dicts (common fields only)."""
    what = f"list reservations for {organization_id}"
    resp = await _with_deadline(api.list_reservations(organization_id), call_timeout, what)
    if resp.status_code != 200:
        raise APIError(resp.status_code, resp.body, expected=200, context=what)
    items = (resp.data or {}).get("reservations") or []
    return [
        {
            "name": it.get("name"),
            "provider": it.get("provider"),
            "region": it.get("region"),
            "instance_type": it.get("instanceType"),
            "price": it.get("price"),
            "count": it.get("count"),
            "start_date": it.get("startDate"),
            "end_date": it.get("endDate"),
            "zone_id": it.get("zoneId"),
            "zone_name": it.get("zoneName"),
        }
        for it in items
        if isinstance(it, dict)
    ]
