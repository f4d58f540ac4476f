"""Canonical CSV field names and their accepted header aliases.

Each field lists its own name first, then the synonyms it may appear under.
Aliases are compared after header normalization (see csv_header.py).
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

FIELD_NAME = "name"
FIELD_PROVIDER = "provider"
FIELD_REGION = "region"
FIELD_INSTANCE_TYPE = "instance_type"
FIELD_PRICE = "price"
FIELD_COUNT = "count"
FIELD_START_DATE = "start_date"
FIELD_END_DATE = "end_date"
FIELD_ZONE_ID = "zone_id"
FIELD_ZONE_NAME = "zone_name"
FIELD_PRODUCT_NAME = "product_name"
FIELD_QUANTITY = "quantity"
FIELD_PURCHASE_DATE = "purchase_date"
FIELD_EXPIRATION_DATE = "expiration_date"
FIELD_TYPE = "type"
FIELD_DEEP_LINK = "deep_link_to_reservation"
FIELD_RESERVATION_ID = "reservation_id"
FIELD_SCOPE_RESOURCE_GROUP = "scope_resource_group"
FIELD_SCOPE_SUBSCRIPTION = "scope_subscription"
FIELD_SCOPE_STATUS = "scope_status"
FIELD_SCOPE = "scope"
FIELD_TERM = "term"
FIELD_STATUS = "status"

FIELD_ALIASES: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        FIELD_NAME: (FIELD_NAME,),
        FIELD_PROVIDER: (FIELD_PROVIDER,),
        FIELD_REGION: (FIELD_REGION,),
        FIELD_INSTANCE_TYPE: (FIELD_INSTANCE_TYPE, FIELD_PRODUCT_NAME),
        FIELD_PRICE: (FIELD_PRICE,),
        FIELD_COUNT: (FIELD_COUNT, FIELD_QUANTITY),
        FIELD_START_DATE: (FIELD_START_DATE, FIELD_PURCHASE_DATE),
        FIELD_END_DATE: (FIELD_END_DATE, FIELD_EXPIRATION_DATE),
        FIELD_ZONE_ID: (FIELD_ZONE_ID,),
        FIELD_ZONE_NAME: (FIELD_ZONE_NAME,),
        FIELD_PRODUCT_NAME: (FIELD_PRODUCT_NAME, FIELD_INSTANCE_TYPE),
        FIELD_QUANTITY: (FIELD_QUANTITY, FIELD_COUNT),
        FIELD_PURCHASE_DATE: (FIELD_PURCHASE_DATE, FIELD_START_DATE),
        FIELD_EXPIRATION_DATE: (FIELD_EXPIRATION_DATE, FIELD_END_DATE),
        FIELD_TYPE: (FIELD_TYPE,),
        FIELD_DEEP_LINK: (FIELD_DEEP_LINK, "deep_link"),
        FIELD_RESERVATION_ID: (FIELD_RESERVATION_ID,),
        FIELD_SCOPE_RESOURCE_GROUP: (FIELD_SCOPE_RESOURCE_GROUP,),
        FIELD_SCOPE_SUBSCRIPTION: (FIELD_SCOPE_SUBSCRIPTION,),
        FIELD_SCOPE_STATUS: (FIELD_SCOPE_STATUS,),
        FIELD_SCOPE: (FIELD_SCOPE,),
        FIELD_TERM: (FIELD_TERM,),
        FIELD_STATUS: (FIELD_STATUS,),
    }
)

# Columns of the legacy generic reservations CSV, in export order.
GENERIC_RESERVATION_FIELDS: Tuple[str, ...] = (
    FIELD_NAME,
    FIELD_PROVIDER,
    FIELD_REGION,
    FIELD_INSTANCE_TYPE,
    FIELD_PRICE,
    FIELD_COUNT,
    FIELD_START_DATE,
    FIELD_END_DATE,
    FIELD_ZONE_ID,
    FIELD_ZONE_NAME,
)

# At least one of these must resolve before data rows are read.
IDENTIFYING_FIELDS: Tuple[str, ...] = (FIELD_REGION, FIELD_INSTANCE_TYPE, FIELD_NAME)
