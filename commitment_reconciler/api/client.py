"""httpx implementation of the InventoryAPI.

Retries 429/502/503/504 with HttpRetryPolicy (honouring Retry-After). Every
other status is returned to the caller untouched; the reconciler decides what
is a failure. Connectivity errors surface as TransportError.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import API_KEY_HEADER, API_TOKEN_ENV, API_URL
from ..errors import TransportError
from .base import ApiResponse
from .http_policy import HttpRetryPolicy

_LOGGER = logging.getLogger(__name__)

COMMITMENTS_PATH = "/v1/inventory/commitments"
ASSIGNMENTS_PATH = "/v1/inventory/commitments/assignments"
RESERVATIONS_PATH = "/v1/inventory/organizations/{organization_id}/reservations"


def _to_response(resp: httpx.Response) -> ApiResponse:
    body = resp.text
    data: Any = None
    if body:
        try:
            data = resp.json()
        except ValueError:
            data = None
    return ApiResponse(status_code=resp.status_code, body=body, data=data)


class CommitmentsClient:
    def __init__(
        self,
        base_url: str = API_URL,
        api_key: Optional[str] = None,
        *,
        retry_policy: Optional[HttpRetryPolicy] = None,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        api_key = api_key or os.getenv(API_TOKEN_ENV)
        headers = {"Accept": "application/json"}
        if api_key:
            headers[API_KEY_HEADER] = api_key
        else:
            _LOGGER.warning("%s is not set; requests will be unauthenticated", API_TOKEN_ENV)
        self.retry_policy = retry_policy or HttpRetryPolicy()
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout or httpx.Timeout(60.0, connect=10.0),
            transport=transport,
        )

    async def __aenter__(self) -> "CommitmentsClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: Any = None) -> ApiResponse:
        attempt = 0
        while True:
            try:
                resp = await self._client.request(method, path, json=json)
            except httpx.TransportError as exc:
                raise TransportError(f"{method} {path}: {type(exc).__name__}: {exc}") from exc

            if self.retry_policy.should_retry(resp.status_code, attempt):
                _LOGGER.warning(
                    "%s %s returned %s; retrying (attempt %d/%d)",
                    method,
                    path,
                    resp.status_code,
                    attempt + 1,
                    self.retry_policy.max_retries,
                )
                await self.retry_policy.wait_async(attempt, resp.headers.get("Retry-After"))
                attempt += 1
                continue

            _LOGGER.debug("%s %s -> %s", method, path, resp.status_code)
            return _to_response(resp)

    # ------------------------------------------------------------------
    # Commitments
    # ------------------------------------------------------------------
    async def list_commitments(self) -> ApiResponse:
        return await self._request("GET", COMMITMENTS_PATH)

    async def list_commitment_assignments(self) -> ApiResponse:
        return await self._request("GET", ASSIGNMENTS_PATH)

    async def create_commitment(self, payload: Dict[str, Any]) -> ApiResponse:
        return await self._request("POST", COMMITMENTS_PATH, json=payload)

    async def update_commitment(self, commitment_id: str, payload: Dict[str, Any]) -> ApiResponse:
        return await self._request("PATCH", f"{COMMITMENTS_PATH}/{commitment_id}", json=payload)

    async def delete_commitment(self, commitment_id: str) -> ApiResponse:
        return await self._request("DELETE", f"{COMMITMENTS_PATH}/{commitment_id}")

    async def replace_commitment_assignments(self, commitment_id: str, cluster_ids: Sequence[str]) -> ApiResponse:
        return await self._request(
            "PUT", f"{COMMITMENTS_PATH}/{commitment_id}/assignments", json=list(cluster_ids)
        )

    # ------------------------------------------------------------------
    # Generic reservations (legacy)
    # ------------------------------------------------------------------
    async def list_reservations(self, organization_id: str) -> ApiResponse:
        return await self._request("GET", RESERVATIONS_PATH.format(organization_id=organization_id))

    async def overwrite_reservations(self, organization_id: str, reservations: List[Dict[str, Any]]) -> ApiResponse:
        path = RESERVATIONS_PATH.format(organization_id=organization_id) + "/overwrite"
        return await self._request("POST", path, json={"items": reservations})
