"""Legacy generic reservations CSV -> GenericReservation records.

Unlike the Azure parser any provider is accepted; the rows are sent to the
organization reservations endpoint as a whole (overwrite semantics).
"""

from __future__ import annotations

import logging

from ..errors import ParseError
from ..models import GenericReservation
from .azure import check_identifying_columns, determine_provider
from .base import ParseOutcome, TextSource, is_blank, iter_csv_rows, parse_int
from .csv_header import cell, resolve_header
from .fields import (
    FIELD_COUNT,
    FIELD_END_DATE,
    FIELD_INSTANCE_TYPE,
    FIELD_NAME,
    FIELD_PRICE,
    FIELD_REGION,
    FIELD_START_DATE,
    FIELD_ZONE_ID,
    FIELD_ZONE_NAME,
)

_LOGGER = logging.getLogger(__name__)


def parse_generic_csv(source: TextSource) -> ParseOutcome:
    outcome = ParseOutcome()
    rows = iter_csv_rows(source)
    header = next(rows, None)
    if header is None:
        return outcome

    indices = resolve_header(header)
    data = [(n, r) for n, r in enumerate(rows, start=1) if not is_blank(r)]
    if not data:
        return outcome

    try:
        check_identifying_columns(header, indices)
    except ParseError as exc:
        outcome.errors.append(exc)
        return outcome

    for row_number, row in data:
        try:
            provider = determine_provider(row, indices, row_number=row_number)
            outcome.records.append(
                GenericReservation(
                    row=row_number,
                    provider=provider,
                    name=cell(row, indices, FIELD_NAME),
                    region=cell(row, indices, FIELD_REGION),
                    instance_type=cell(row, indices, FIELD_INSTANCE_TYPE),
                    price=cell(row, indices, FIELD_PRICE),
                    count=parse_int(cell(row, indices, FIELD_COUNT), "count", row=row_number),
                    start_date=cell(row, indices, FIELD_START_DATE),
                    end_date=cell(row, indices, FIELD_END_DATE),
                    zone_id=cell(row, indices, FIELD_ZONE_ID),
                    zone_name=cell(row, indices, FIELD_ZONE_NAME),
                )
            )
        except ParseError as exc:
            outcome.errors.append(exc)

    _LOGGER.debug("Parsed %d generic reservations (%d errors)", len(outcome.records), len(outcome.errors))
    return outcome
