import asyncio
import copy
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1].parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from commitment_reconciler.api.base import ApiResponse
from commitment_reconciler.errors import TransportError


GCP_CUD = {
    "id": "123456789",
    "name": "test-cud",
    "plan": "TWELVE_MONTHS",
    "region": "https://www.googleapis.com/compute/v1/projects/my-project/regions/us-central1",
    "resources": [
        {"type": "VCPU", "amount": "10"},
        {"type": "MEMORY", "amount": "20480"},
    ],
    "startTimestamp": "2023-01-01T00:00:00-07:00",
    "endTimestamp": "2024-01-01T00:00:00-07:00",
    "status": "ACTIVE",
    "type": "COMPUTE_OPTIMIZED_C2D",
}

AZURE_CSV = (
    "Name,Reservation Id,Reservation order Id,Status,Expiration date,Purchase date,Term,Scope,"
    "Scope subscription,Scope resource group,Type,Product name,Region,Quantity,Deep link to reservation\n"
    "VM_RI_01,3ef13a1d-0001,order-1,Succeeded,2025-01-01T00:00:00Z,2024-01-01T00:00:00Z,P1Y,Single subscription,"
    "sub-1,,VirtualMachines,Standard_D32as_v4,eastus,3,"
    "https://portal.azure.com#resource/providers/microsoft.capacity/reservationOrders/order-1/reservations/3ef13a1d-0001/overview\n"
    "VM_RI_02,3ef13a1d-0002,order-2,Succeeded,2026-01-01T00:00:00Z,2023-01-01T00:00:00Z,P3Y,Single subscription,"
    "sub-1,,VirtualMachines,Standard_D8as_v4,eastus,2,"
    "https://portal.azure.com#resource/providers/microsoft.capacity/reservationOrders/order-2/reservations/3ef13a1d-0002/overview\n"
    "VM_RI_03,3ef13a1d-0003,order-3,Succeeded,2025-06-01T00:00:00Z,2024-06-01T00:00:00Z,P1Y,Shared,"
    ",,VirtualMachines,Standard_E4s_v3,eastus,1,"
    "https://portal.azure.com#resource/providers/microsoft.capacity/reservationOrders/order-3/reservations/3ef13a1d-0003/overview\n"
)


class FakeInventoryAPI:
    """In-memory control plane that behaves like the real commitments API."""

    def __init__(self, commitments: Optional[List[Dict[str, Any]]] = None):
        self.commitments: List[Dict[str, Any]] = copy.deepcopy(commitments or [])
        self.assignments: List[Dict[str, Any]] = []
        self.reservations: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, Any]] = []
        # (operation, commitment name or id) -> status code to return instead
        self.fail_on: Dict[Tuple[str, str], int] = {}
        self.transport_fail_on: Set[Tuple[str, str]] = set()
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self._next_id = 1

    @property
    def mutations(self) -> List[Tuple[str, Any]]:
        return [c for c in self.calls if not c[0].startswith("list_")]

    async def _enter(self, op: str, subject: str) -> Optional[ApiResponse]:
        self.calls.append((op, subject))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if (op, subject) in self.transport_fail_on:
            raise TransportError(f"{op} {subject}: connection reset")
        status = self.fail_on.get((op, subject))
        if status is not None:
            return ApiResponse(status_code=status, body=json.dumps({"message": "boom"}))
        return None

    def _find(self, commitment_id: str) -> Optional[Dict[str, Any]]:
        for c in self.commitments:
            if c["id"] == commitment_id:
                return c
        return None

    @staticmethod
    def _ok(status: int, data: Any = None) -> ApiResponse:
        body = json.dumps(data) if data is not None else ""
        return ApiResponse(status_code=status, body=body, data=data)

    async def list_commitments(self) -> ApiResponse:
        failed = await self._enter("list_commitments", "")
        return failed or self._ok(200, {"commitments": copy.deepcopy(self.commitments)})

    async def list_commitment_assignments(self) -> ApiResponse:
        failed = await self._enter("list_commitment_assignments", "")
        return failed or self._ok(200, {"commitmentsAssignments": copy.deepcopy(self.assignments)})

    async def create_commitment(self, payload: Dict[str, Any]) -> ApiResponse:
        failed = await self._enter("create_commitment", payload.get("name"))
        if failed:
            return failed
        record = copy.deepcopy(payload)
        record["id"] = f"cmt-{self._next_id}"
        record.setdefault("status", "Active")
        self._next_id += 1
        self.commitments.append(record)
        return self._ok(201, record)

    async def update_commitment(self, commitment_id: str, payload: Dict[str, Any]) -> ApiResponse:
        failed = await self._enter("update_commitment", commitment_id)
        if failed:
            return failed
        record = self._find(commitment_id)
        if record is None:
            return ApiResponse(status_code=404, body="not found")
        record.update(copy.deepcopy(payload))
        return self._ok(200, record)

    async def delete_commitment(self, commitment_id: str) -> ApiResponse:
        failed = await self._enter("delete_commitment", commitment_id)
        if failed:
            return failed
        self.commitments = [c for c in self.commitments if c["id"] != commitment_id]
        return ApiResponse(status_code=204)

    async def replace_commitment_assignments(self, commitment_id: str, cluster_ids: Sequence[str]) -> ApiResponse:
        failed = await self._enter("replace_commitment_assignments", commitment_id)
        if failed:
            return failed
        self.assignments = [a for a in self.assignments if a["commitmentId"] != commitment_id]
        self.assignments += [
            {"commitmentId": commitment_id, "clusterId": cluster, "priority": i + 1}
            for i, cluster in enumerate(cluster_ids)
        ]
        return self._ok(200, [])

    async def list_reservations(self, organization_id: str) -> ApiResponse:
        failed = await self._enter("list_reservations", organization_id)
        return failed or self._ok(200, {"reservations": copy.deepcopy(self.reservations.get(organization_id, []))})

    async def overwrite_reservations(self, organization_id: str, reservations: List[Dict[str, Any]]) -> ApiResponse:
        failed = await self._enter("overwrite_reservations", organization_id)
        if failed:
            return failed
        self.reservations[organization_id] = copy.deepcopy(reservations)
        return self._ok(200, {})


def remote_gcp(commitment_id: str = "cmt-1", **overrides: Any) -> Dict[str, Any]:
    ctx = {
        "cudId": "123456789",
        "cpu": "10",
        "memoryMb": "20480",
        "plan": "TWELVE_MONTHS",
        "status": "ACTIVE",
        "type": "COMPUTE_OPTIMIZED_C2D",
    }
    ctx.update(overrides.pop("context", {}))
    record = {
        "id": commitment_id,
        "name": "test-cud",
        "region": "us-central1",
        "startDate": "2023-01-01T07:00:00Z",
        "endDate": "2024-01-01T07:00:00Z",
        "status": "Active",
        "allowedUsage": 1.0,
        "prioritization": False,
        "scalingStrategy": "Default",
        "gcpResourceCudContext": ctx,
    }
    record.update(overrides)
    return record


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_api():
    return FakeInventoryAPI()


@pytest.fixture
def gcp_cud():
    return copy.deepcopy(GCP_CUD)


@pytest.fixture
def azure_csv():
    return AZURE_CSV
