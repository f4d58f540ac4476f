"""Abstract control-plane inventory interface.

Every method is a coroutine returning an ApiResponse whatever the HTTP status;
only connectivity problems raise (TransportError). Implementations must be
safe for concurrent use by the apply phase.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    body: str = ""
    data: Any = None


@runtime_checkable
class InventoryAPI(Protocol):
    async def list_commitments(self) -> ApiResponse:
        ...

    async def list_commitment_assignments(self) -> ApiResponse:
        ...

    async def create_commitment(self, payload: Dict[str, Any]) -> ApiResponse:
        ...

    async def update_commitment(self, commitment_id: str, payload: Dict[str, Any]) -> ApiResponse:
        ...

    async def delete_commitment(self, commitment_id: str) -> ApiResponse:
        ...

    async def replace_commitment_assignments(self, commitment_id: str, cluster_ids: Sequence[str]) -> ApiResponse:
        ...

    async def list_reservations(self, organization_id: str) -> ApiResponse:
        ...

    async def overwrite_reservations(self, organization_id: str, reservations: List[Dict[str, Any]]) -> ApiResponse:
        ...
