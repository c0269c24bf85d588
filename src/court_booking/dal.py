from __future__ import annotations

import os
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any, cast

import boto3
from aws_lambda_powertools import Logger

if TYPE_CHECKING:
    # Only for static type checking; not imported at runtime
    from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource
    from mypy_boto3_dynamodb.service_resource import Table as DynamoDBTable
else:
    # Fallbacks to satisfy annotations at runtime
    DynamoDBServiceResource = Any  # type: ignore[assignment]
    DynamoDBTable = Any  # type: ignore[assignment]

from .catalog import Catalog
from .models import Booking, BookingStatus, Coach, Court, Equipment, PricingRule, WaitlistEntry

logger = Logger()
_TABLE_NAME = os.environ.get("TABLE_NAME", "bookings")
_WAITLIST_TABLE_NAME = os.environ.get("WAITLIST_TABLE_NAME", "waitlist")
_CATALOG_TABLE_NAME = os.environ.get("CATALOG_TABLE_NAME", "facility_catalog")

_dynamodb: DynamoDBServiceResource = boto3.resource("dynamodb")
_table: DynamoDBTable = _dynamodb.Table(_TABLE_NAME)
_waitlist_table: DynamoDBTable = _dynamodb.Table(_WAITLIST_TABLE_NAME)
_catalog_table: DynamoDBTable = _dynamodb.Table(_CATALOG_TABLE_NAME)

_CATALOG_MODELS: dict[str, type[Court] | type[Coach] | type[Equipment] | type[PricingRule]] = {
    "court": Court,
    "coach": Coach,
    "equipment": Equipment,
    "pricing_rule": PricingRule,
}


def _to_dynamo(value: Any) -> Any:
    # DynamoDB has no datetime type and rejects floats
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


def _scan_all(table: DynamoDBTable) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    kwargs: dict[str, Any] = {}
    while True:
        resp = cast(dict[str, Any], table.scan(**kwargs))
        items.extend(it for it in resp.get("Items", []) if isinstance(it, dict))
        last_key = resp.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key


def load_catalog() -> Catalog:
    records: dict[str, list[Any]] = {kind: [] for kind in _CATALOG_MODELS}
    for item in _scan_all(_catalog_table):
        kind = item.get("record_type")
        model = _CATALOG_MODELS.get(cast(str, kind))
        if model is None:
            logger.warning("Skipping unknown catalog record", extra={"record_type": kind})
            continue
        fields = {k: v for k, v in item.items() if k not in ("record_type", "record_id")}
        records[cast(str, kind)].append(model.model_validate({**fields, "id": item["record_id"]}))

    logger.info("Catalog loaded", extra={kind: len(found) for kind, found in records.items()})
    return Catalog(
        courts=records["court"],
        coaches=records["coach"],
        equipment=records["equipment"],
        pricing_rules=records["pricing_rule"],
    )


def put_booking(booking: Booking) -> None:
    logger.info("Saving booking", extra={"booking_id": booking.id, "status": booking.status})
    _table.put_item(Item=_to_dynamo(booking.model_dump()))  # type: ignore


def list_bookings(status: BookingStatus | None = None) -> list[Booking]:
    bookings = [Booking.model_validate(it) for it in _scan_all(_table)]
    return [b for b in bookings if status is None or b.status == status]


def put_waitlist_entry(entry: WaitlistEntry) -> None:
    logger.info(
        "Saving waitlist entry",
        extra={"entry_id": entry.id, "status": entry.status, "position": entry.position},
    )
    _waitlist_table.put_item(Item=_to_dynamo(entry.model_dump()))  # type: ignore


def delete_waitlist_entry(entry_id: str) -> None:
    _waitlist_table.delete_item(Key={"id": entry_id})


def list_waitlist_entries() -> list[WaitlistEntry]:
    return [WaitlistEntry.model_validate(it) for it in _scan_all(_waitlist_table)]
