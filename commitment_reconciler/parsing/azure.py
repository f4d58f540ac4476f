"""Azure Reservations CSV exports -> AzureImport records.

The portal export has no provider column; rows are recognised as Azure by the
``Deep link to reservation`` URL. Row numbers in errors are 1-based and count
data rows only (the header is not a row).
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import ParseError, ProviderUndeterminedError
from ..models import AZURE, AzureImport
from .base import ParseOutcome, TextSource, is_blank, iter_csv_rows, parse_int
from .csv_header import MISSING, cell, resolve_header
from .fields import (
    FIELD_COUNT,
    FIELD_DEEP_LINK,
    FIELD_END_DATE,
    FIELD_INSTANCE_TYPE,
    FIELD_NAME,
    FIELD_PROVIDER,
    FIELD_REGION,
    FIELD_RESERVATION_ID,
    FIELD_SCOPE,
    FIELD_SCOPE_RESOURCE_GROUP,
    FIELD_SCOPE_SUBSCRIPTION,
    FIELD_START_DATE,
    FIELD_STATUS,
    FIELD_TERM,
    IDENTIFYING_FIELDS,
)

_LOGGER = logging.getLogger(__name__)

_RESERVATION_ID_RE = re.compile(r"/reservations/([^/?#]+)", re.IGNORECASE)


def reservation_id_from_link(link: Optional[str]) -> Optional[str]:
    if not link:
        return None
    m = _RESERVATION_ID_RE.search(link)
    return m.group(1) if m else None


def determine_provider(row: Sequence[str], indices: Dict[str, int], *, row_number: int) -> str:
    """Explicit provider column first, then an Azure deep link."""
    explicit = cell(row, indices, FIELD_PROVIDER)
    if explicit:
        return explicit.lower()
    link = cell(row, indices, FIELD_DEEP_LINK)
    if link and AZURE in link.lower():
        return AZURE
    raise ProviderUndeterminedError(row_number, list(row))


def check_identifying_columns(header: Sequence[str], indices: Dict[str, int]) -> None:
    if all(indices[f] == MISSING for f in IDENTIFYING_FIELDS):
        raise ParseError(
            "header",
            list(header),
            message="CSV header must contain at least one of: region, instance_type/product_name, name",
        )


def parse_azure_row(row: Sequence[str], indices: Dict[str, int], *, row_number: int) -> AzureImport:
    provider = determine_provider(row, indices, row_number=row_number)
    if provider != AZURE:
        raise ParseError(
            "provider",
            provider,
            row=row_number,
            message=f"unsupported provider {provider!r} for an Azure reservation (row {row_number})",
        )

    name = cell(row, indices, FIELD_NAME)
    if name is None:
        raise ParseError("name", None, row=row_number, message=f"reservation name is required (row {row_number})")

    link = cell(row, indices, FIELD_DEEP_LINK)
    return AzureImport(
        row=row_number,
        name=name,
        reservation_id=cell(row, indices, FIELD_RESERVATION_ID) or reservation_id_from_link(link),
        region=cell(row, indices, FIELD_REGION),
        instance_type=cell(row, indices, FIELD_INSTANCE_TYPE),
        quantity=parse_int(cell(row, indices, FIELD_COUNT), "quantity", row=row_number),
        term=cell(row, indices, FIELD_TERM),
        status=cell(row, indices, FIELD_STATUS),
        purchase_date=cell(row, indices, FIELD_START_DATE),
        expiration_date=cell(row, indices, FIELD_END_DATE),
        scope=cell(row, indices, FIELD_SCOPE),
        scope_subscription=cell(row, indices, FIELD_SCOPE_SUBSCRIPTION),
        scope_resource_group=cell(row, indices, FIELD_SCOPE_RESOURCE_GROUP),
        deep_link=link,
    )


def parse_azure_csv(source: TextSource) -> ParseOutcome:
    outcome = ParseOutcome()
    rows = iter_csv_rows(source)
    header = next(rows, None)
    if header is None:
        return outcome

    indices = resolve_header(header)
    data: List[Tuple[int, List[str]]] = [
        (n, r) for n, r in enumerate(rows, start=1) if not is_blank(r)
    ]
    if not data:
        return outcome

    try:
        check_identifying_columns(header, indices)
    except ParseError as exc:
        outcome.errors.append(exc)
        return outcome

    for row_number, row in data:
        try:
            outcome.records.append(parse_azure_row(row, indices, row_number=row_number))
        except ParseError as exc:
            outcome.errors.append(exc)

    _LOGGER.debug("Parsed %d Azure reservations (%d errors)", len(outcome.records), len(outcome.errors))
    return outcome
