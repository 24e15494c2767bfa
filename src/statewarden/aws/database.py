"""DynamoDB-backed tables for tracked states, foreign resources, logs and features.

Every table is keyed by a string ``Id`` attribute and named
``<prefix>_<table>``. Entities are converted to and from items by one
explicit function pair per type.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, TypeVar

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from statewarden.errors import PersistenceError
from statewarden.models import (
    ComplianceFeature,
    ComplianceResult,
    ForeignResource,
    LogKind,
    TrackedState,
    ValidationLogEntry,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATES_TABLE = "tfstates"
FOREIGN_RESOURCES_TABLE = "foreignresources"
LOGS_TABLE = "logs"
FEATURES_TABLE = "features"

ALL_TABLES = (STATES_TABLE, FOREIGN_RESOURCES_TABLE, LOGS_TABLE, FEATURES_TABLE)

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _dump_result(result: ComplianceResult | None) -> str:
    return json.dumps(result.to_dict()) if result is not None else ""


def _load_result(raw: str) -> ComplianceResult | None:
    return ComplianceResult.from_dict(json.loads(raw)) if raw else None


def _dump_time(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


def _load_time(raw: str) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None


def state_to_item(state: TrackedState) -> dict[str, Any]:
    return {
        "Id": state.id,
        "Account": state.account,
        "Bucket": state.bucket,
        "Path": state.path,
        "Tags": list(state.tags),
        "State": state.last_known_content_json,
        "ComplianceResult": _dump_result(state.last_compliance_result),
        "S3LastModification": state.last_modification_token,
        "LastUpdate": _dump_time(state.last_checked_at),
        "ForceValidation": state.force_recheck,
    }


def state_from_item(item: dict[str, Any]) -> TrackedState:
    return TrackedState(
        id=item["Id"],
        account=item.get("Account", ""),
        bucket=item["Bucket"],
        path=item["Path"],
        tags=list(item.get("Tags", [])),
        last_known_content_json=item.get("State", ""),
        last_compliance_result=_load_result(item.get("ComplianceResult", "")),
        last_modification_token=item.get("S3LastModification", ""),
        last_checked_at=_load_time(item.get("LastUpdate", "")),
        force_recheck=bool(item.get("ForceValidation", False)),
    )


def foreign_resource_to_item(resource: ForeignResource) -> dict[str, Any]:
    return {
        "Id": resource.id,
        "DiscoveredTimestamp": _dump_time(resource.discovered_at),
        "ResourceType": resource.resource_type,
        "ResourceId": resource.resource_id,
        "ResourceDetails": resource.resource_details,
        "IsException": resource.is_exception,
    }


def foreign_resource_from_item(item: dict[str, Any]) -> ForeignResource:
    return ForeignResource(
        id=item["Id"],
        resource_type=item["ResourceType"],
        resource_id=item["ResourceId"],
        resource_details=item.get("ResourceDetails", ""),
        discovered_at=_load_time(item["DiscoveredTimestamp"]),
        is_exception=bool(item.get("IsException", False)),
    )


def log_to_item(entry: ValidationLogEntry) -> dict[str, Any]:
    return {
        "Id": entry.id,
        "Kind": entry.kind.value,
        "DateTime": _dump_time(entry.created_at),
        "InputJson": entry.current_state_json,
        "Result": _dump_result(entry.current_result),
        "PrevInputJson": entry.previous_state_json,
        "PrevResult": _dump_result(entry.previous_result),
        "Details": entry.location_details,
    }


def log_from_item(item: dict[str, Any]) -> ValidationLogEntry:
    return ValidationLogEntry(
        id=item["Id"],
        kind=LogKind(item["Kind"]),
        created_at=_load_time(item["DateTime"]),
        current_state_json=item.get("InputJson", ""),
        current_result=_load_result(item.get("Result", "")) or ComplianceResult(),
        previous_state_json=item.get("PrevInputJson", ""),
        previous_result=_load_result(item.get("PrevResult", "")),
        location_details=item.get("Details", ""),
    )


def feature_to_item(feature: ComplianceFeature) -> dict[str, Any]:
    return {
        "Id": feature.name,
        "Source": feature.source,
        "Tags": list(feature.tags),
        "Disabled": feature.disabled,
    }


def feature_from_item(item: dict[str, Any]) -> ComplianceFeature:
    return ComplianceFeature(
        name=item["Id"],
        source=item.get("Source", ""),
        tags=list(item.get("Tags", [])),
        disabled=bool(item.get("Disabled", False)),
    )


class Database:
    """Generic load-all / load-by-id / save / remove over DynamoDB tables."""

    def __init__(self, table_prefix: str, region: str | None = None):
        self._prefix = table_prefix
        self._client = boto3.client("dynamodb", **({"region_name": region} if region else {}))

    def table_for(self, name: str) -> str:
        return f"{self._prefix}_{name}"

    def init_tables(self) -> None:
        """Create every table that does not exist yet and wait until it does."""
        for name in ALL_TABLES:
            table = self.table_for(name)
            try:
                self._client.create_table(
                    TableName=table,
                    AttributeDefinitions=[{"AttributeName": "Id", "AttributeType": "S"}],
                    KeySchema=[{"AttributeName": "Id", "KeyType": "HASH"}],
                    BillingMode="PAY_PER_REQUEST",
                )
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") == "ResourceInUseException":
                    continue
                raise PersistenceError(f"can't create table {table}: {e}") from e
            logger.info("Waiting until table '%s' is created in DynamoDB...", table)
            self._client.get_waiter("table_exists").wait(TableName=table)

    # Generic table methods.

    def _scan(self, table: str, **kwargs: Any) -> list[dict[str, Any]]:
        items = []
        try:
            paginator = self._client.get_paginator("scan")
            for page in paginator.paginate(TableName=self.table_for(table), **kwargs):
                for raw in page["Items"]:
                    items.append({k: _deserializer.deserialize(v) for k, v in raw.items()})
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"can't scan table {self.table_for(table)}: {e}") from e
        return items

    def _load_all(self, table: str, convert: Callable[[dict[str, Any]], T], **kwargs: Any) -> list[T]:
        return [convert(item) for item in self._scan(table, **kwargs)]

    def _load(self, table: str, item_id: str, convert: Callable[[dict[str, Any]], T]) -> T | None:
        try:
            response = self._client.get_item(
                TableName=self.table_for(table), Key={"Id": {"S": item_id}}
            )
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"can't load {item_id} from {self.table_for(table)}: {e}") from e
        raw = response.get("Item")
        if raw is None:
            return None
        return convert({k: _deserializer.deserialize(v) for k, v in raw.items()})

    def _save(self, table: str, item: dict[str, Any]) -> None:
        try:
            self._client.put_item(
                TableName=self.table_for(table),
                Item={k: _serializer.serialize(v) for k, v in item.items()},
            )
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"can't save {item['Id']} to {self.table_for(table)}: {e}") from e

    def _remove(self, table: str, item_id: str) -> None:
        try:
            self._client.delete_item(TableName=self.table_for(table), Key={"Id": {"S": item_id}})
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(
                f"can't remove {item_id} from {self.table_for(table)}: {e}"
            ) from e

    # Tracked states.

    def load_all_states(self) -> list[TrackedState]:
        return self._load_all(STATES_TABLE, state_from_item)

    def load_forced_states(self) -> list[TrackedState]:
        """Load only the states flagged for immediate recheck."""
        return self._load_all(
            STATES_TABLE,
            state_from_item,
            FilterExpression="ForceValidation = :forced",
            ExpressionAttributeValues={":forced": {"BOOL": True}},
        )

    def load_state(self, state_id: str) -> TrackedState | None:
        return self._load(STATES_TABLE, state_id, state_from_item)

    def save_state(self, state: TrackedState) -> None:
        self._save(STATES_TABLE, state_to_item(state))

    def remove_state(self, state_id: str) -> None:
        self._remove(STATES_TABLE, state_id)

    # Foreign resources.

    def load_all_foreign_resources(self) -> list[ForeignResource]:
        return self._load_all(FOREIGN_RESOURCES_TABLE, foreign_resource_from_item)

    def load_foreign_resource(self, resource_id: str) -> ForeignResource | None:
        return self._load(FOREIGN_RESOURCES_TABLE, resource_id, foreign_resource_from_item)

    def save_foreign_resource(self, resource: ForeignResource) -> None:
        self._save(FOREIGN_RESOURCES_TABLE, foreign_resource_to_item(resource))

    def remove_foreign_resource(self, resource_id: str) -> None:
        self._remove(FOREIGN_RESOURCES_TABLE, resource_id)

    # Validation logs.

    def load_all_logs(self) -> list[ValidationLogEntry]:
        return self._load_all(LOGS_TABLE, log_from_item)

    def load_log(self, log_id: str) -> ValidationLogEntry | None:
        return self._load(LOGS_TABLE, log_id, log_from_item)

    def save_log(self, entry: ValidationLogEntry) -> None:
        self._save(LOGS_TABLE, log_to_item(entry))

    def remove_log(self, log_id: str) -> None:
        self._remove(LOGS_TABLE, log_id)

    # Compliance features.

    def load_all_features(self) -> list[ComplianceFeature]:
        return self._load_all(FEATURES_TABLE, feature_from_item)

    def load_feature(self, name: str) -> ComplianceFeature | None:
        return self._load(FEATURES_TABLE, name, feature_from_item)

    def save_feature(self, feature: ComplianceFeature) -> None:
        self._save(FEATURES_TABLE, feature_to_item(feature))

    def remove_feature(self, name: str) -> None:
        self._remove(FEATURES_TABLE, name)
