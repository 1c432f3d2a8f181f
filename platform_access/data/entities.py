"""Persisted entity types.

Aggregate roots that belong to exactly one tenant derive from `TenantScopedEntity`.
Child records reach their tenant through a parent relation and derive from `Entity`
directly.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(UTC)


class Entity(BaseModel):
    """Base for every stored record."""

    model_config = ConfigDict(extra="ignore")

    entity_name: ClassVar[str]

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class TenantScopedEntity(Entity):
    """Marks an aggregate root owned by a single tenant."""

    tenant_id: str


def is_tenant_scoped(entity: type[Entity]) -> bool:
    return issubclass(entity, TenantScopedEntity)


# Tenant-scoped aggregate roots


class Customer(TenantScopedEntity):
    entity_name: ClassVar[str] = "customer"

    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    billing_account_id: str | None = None
    lead_source_id: str | None = None


class Job(TenantScopedEntity):
    entity_name: ClassVar[str] = "job"

    customer_id: str | None = None
    status: str = "PENDING"
    scheduled_date: datetime | None = None


class PricingQuote(TenantScopedEntity):
    entity_name: ClassVar[str] = "pricing_quote"

    job_id: str
    status: str = "DRAFT"
    total: Decimal = Decimal("0")
    currency: str = "CAD"


class Settlement(TenantScopedEntity):
    entity_name: ClassVar[str] = "settlement"

    job_id: str
    status: str = "DRAFT"
    total: Decimal = Decimal("0")


class CrewMember(TenantScopedEntity):
    entity_name: ClassVar[str] = "crew_member"

    name: str
    role: str
    is_active: bool = True


class Vehicle(TenantScopedEntity):
    entity_name: ClassVar[str] = "vehicle"

    registration_plate: str
    capacity_cubic_feet: float = 0.0
    is_active: bool = True


class Availability(TenantScopedEntity):
    entity_name: ClassVar[str] = "availability"

    crew_member_id: str | None = None
    vehicle_id: str | None = None
    date: datetime
    is_available: bool = True


class InventoryRoom(TenantScopedEntity):
    entity_name: ClassVar[str] = "inventory_room"

    job_id: str
    name: str


class LeadSource(TenantScopedEntity):
    entity_name: ClassVar[str] = "lead_source"

    name: str
    description: str | None = None


class BillingAccount(TenantScopedEntity):
    entity_name: ClassVar[str] = "billing_account"

    name: str


class RateTable(TenantScopedEntity):
    entity_name: ClassVar[str] = "rate_table"

    name: str
    effective_from: datetime | None = None


# Children: scoped through their parent


class Contact(Entity):
    entity_name: ClassVar[str] = "contact"

    customer_id: str
    first_name: str
    last_name: str
    email: str
    is_primary: bool = False


class Stop(Entity):
    entity_name: ClassVar[str] = "stop"

    job_id: str
    sequence: int
    kind: str = "PICKUP"


class QuoteLineItem(Entity):
    entity_name: ClassVar[str] = "quote_line_item"

    quote_id: str
    description: str
    amount: Decimal = Decimal("0")


class InventoryItem(Entity):
    entity_name: ClassVar[str] = "inventory_item"

    room_id: str
    name: str
    quantity: int = 1


class Payment(Entity):
    entity_name: ClassVar[str] = "payment"

    settlement_id: str
    amount: Decimal = Decimal("0")
    method: str = "CARD"


class Rate(Entity):
    entity_name: ClassVar[str] = "rate"

    rate_table_id: str
    label: str
    amount: Decimal = Decimal("0")
