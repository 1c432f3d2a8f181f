"""
Cosmos DB data client.

All entity types share one container partitioned by `/entity`; each stored item
carries its entity name in that field. Filters are translated to parameterized
Cosmos SQL so that no caller-supplied value is ever spliced into query text.

Uses the async Cosmos DB SDK (azure.cosmos.aio) for non-blocking I/O operations.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

from azure.core import MatchConditions
from azure.cosmos.aio import ContainerProxy, CosmosClient
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)
from azure.cosmos.partition_key import PartitionKey
from azure.identity.aio import DefaultAzureCredential

from platform_access.config import Settings
from platform_access.data.client import StorageDataClient
from platform_access.data.entities import Entity
from platform_access.data.filters import to_storage_value
from platform_access.errors import (
    ConfigurationError,
    DuplicateRecordError,
    RecordNotFoundError,
    WriteConflictError,
)
from platform_access.logger import get_logger

logger = get_logger(__name__)

PARTITION_FIELD = "entity"

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _field(name: str) -> str:
    if not _FIELD_NAME.match(name):
        raise ValueError(f"Invalid field name in filter: {name!r}")
    return f"c.{name}"


def build_query(
    entity_name: str,
    where: dict[str, Any],
    *,
    count: bool = False,
    order_by: tuple[str, str] | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> tuple[str, list[dict[str, Any]]]:
    """Translate a filter into a Cosmos SQL query and its parameters.

    Returns:
        (query, parameters) ready for `ContainerProxy.query_items`.
    """
    parameters: list[dict[str, Any]] = [{"name": "@entity", "value": entity_name}]
    clauses = [f"c.{PARTITION_FIELD} = @entity"]

    def bind(value: Any) -> str:
        name = f"@p{len(parameters) - 1}"
        parameters.append({"name": name, "value": to_storage_value(value)})
        return name

    for field_name, condition in where.items():
        column = _field(field_name)
        if isinstance(condition, dict):
            for operator, operand in condition.items():
                if operator == "in":
                    clauses.append(f"ARRAY_CONTAINS({bind(list(operand))}, {column})")
                elif operator == "not":
                    clauses.append(f"{column} != {bind(operand)}")
                else:
                    raise ValueError(f"Unsupported filter operator: {operator!r}")
        else:
            clauses.append(f"{column} = {bind(condition)}")

    select = "SELECT VALUE COUNT(1) FROM c" if count else "SELECT * FROM c"
    query = f"{select} WHERE {' AND '.join(clauses)}"

    if not count:
        if order_by is not None:
            field_name, direction = order_by
            direction = direction.upper()
            if direction not in ("ASC", "DESC"):
                raise ValueError(f"Invalid sort direction: {direction!r}")
            query += f" ORDER BY {_field(field_name)} {direction}"
        if limit is not None:
            query += f" OFFSET {bind(offset)} LIMIT {bind(limit)}"

    return query, parameters


class CosmosDataClient(StorageDataClient):
    """Data client backed by a single Cosmos DB container."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self.client: CosmosClient | None = None
        self.container: ContainerProxy | None = None
        self._credential: DefaultAzureCredential | None = None
        self._init_lock = asyncio.Lock()

    async def _ensure_container(self) -> ContainerProxy:
        """Initialize the Cosmos DB client with key or managed identity authentication."""
        if self.container is not None:
            return self.container
        async with self._init_lock:
            if self.container is None:
                self.container = await self._open_container()
        return self.container

    async def _open_container(self) -> ContainerProxy:
        settings = self._settings
        if not settings.cosmos_db_endpoint:
            raise ConfigurationError("COSMOS_DB_ENDPOINT must be configured")

        # Key authentication locally, managed identity in Azure
        if not settings.use_managed_identity and settings.cosmos_db_key:
            self.client = CosmosClient(
                url=settings.cosmos_db_endpoint,
                credential=settings.cosmos_db_key,
                enable_endpoint_discovery=False,
                connection_timeout=30,
            )
            logger.info("cosmos_db_init", auth_method="key")
        else:
            self._credential = DefaultAzureCredential()
            self.client = CosmosClient(
                url=settings.cosmos_db_endpoint,
                credential=self._credential,
                enable_endpoint_discovery=True,
                connection_timeout=30,
            )
            logger.info("cosmos_db_init", auth_method="managed_identity")

        await self.client.__aenter__()
        database = self.client.get_database_client(settings.cosmos_db_database_name)
        container = await database.create_container_if_not_exists(
            id=settings.cosmos_db_container_name,
            partition_key=PartitionKey(path=f"/{PARTITION_FIELD}"),
        )
        logger.info(
            "cosmos_db_initialized",
            database=settings.cosmos_db_database_name,
            container=settings.cosmos_db_container_name,
        )
        return container

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None
            self.container = None
        if self._credential is not None:
            await self._credential.close()
            self._credential = None

    async def _select(
        self,
        entity: type[Entity],
        where: dict[str, Any],
        *,
        limit: int | None = None,
        offset: int = 0,
        order_by: tuple[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        container = await self._ensure_container()
        query, parameters = build_query(
            entity.entity_name, where, order_by=order_by, limit=limit, offset=offset
        )
        items = [
            item
            async for item in container.query_items(
                query=query,
                parameters=parameters,
                partition_key=entity.entity_name,
            )
        ]
        # Cosmos requires OFFSET and LIMIT together.
        if limit is None and offset:
            items = items[offset:]
        return items

    async def _count(self, entity: type[Entity], where: dict[str, Any]) -> int:
        container = await self._ensure_container()
        query, parameters = build_query(entity.entity_name, where, count=True)
        results = [
            value
            async for value in container.query_items(
                query=query,
                parameters=parameters,
                partition_key=entity.entity_name,
            )
        ]
        return int(results[0]) if results else 0

    async def _insert(self, entity: type[Entity], row: dict[str, Any]) -> None:
        container = await self._ensure_container()
        try:
            await container.create_item(body={**row, PARTITION_FIELD: entity.entity_name})
        except CosmosResourceExistsError as error:
            raise DuplicateRecordError(
                f"{entity.entity_name} {row['id']} already exists"
            ) from error

    async def _replace(
        self, entity: type[Entity], row: dict[str, Any], expected: dict[str, Any]
    ) -> None:
        container = await self._ensure_container()
        condition: dict[str, Any] = {}
        if expected.get("_etag"):
            condition = {
                "etag": expected["_etag"],
                "match_condition": MatchConditions.IfNotModified,
            }
        try:
            await container.replace_item(
                item=row["id"], body={**row, PARTITION_FIELD: entity.entity_name}, **condition
            )
        except (CosmosAccessConditionFailedError, CosmosResourceNotFoundError) as error:
            raise WriteConflictError(f"{entity.entity_name} {row['id']} changed") from error

    async def _remove(self, entity: type[Entity], row: dict[str, Any]) -> None:
        container = await self._ensure_container()
        try:
            await container.delete_item(item=row["id"], partition_key=entity.entity_name)
        except CosmosResourceNotFoundError as error:
            raise RecordNotFoundError(f"{entity.entity_name} {row['id']} not found") from error
