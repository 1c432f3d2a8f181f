from datetime import UTC, datetime

import pytest

from platform_access.data import entities
from platform_access.data.entities import Contact, Customer, Entity, TenantScopedEntity
from platform_access.data.memory import InMemoryDataClient
from platform_access.data.operations import DataOperation, OperationKind
from platform_access.errors import RecordNotFoundError
from platform_access.tenancy.scoped import SCOPE_POLICIES, ScopedDataAccess

TENANT_A = "tenant-a"
TENANT_B = "tenant-b"

# Minimal valid payload for every tenant-scoped aggregate root.
SAMPLE_FIELDS: dict[type[Entity], dict] = {
    entities.Customer: {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"},
    entities.Job: {},
    entities.PricingQuote: {"job_id": "job-1"},
    entities.Settlement: {"job_id": "job-1"},
    entities.CrewMember: {"name": "Sam", "role": "DRIVER"},
    entities.Vehicle: {"registration_plate": "ABC-123"},
    entities.Availability: {"date": datetime(2026, 1, 5, tzinfo=UTC)},
    entities.InventoryRoom: {"job_id": "job-1", "name": "Kitchen"},
    entities.LeadSource: {"name": "Referral"},
    entities.BillingAccount: {"name": "Main"},
    entities.RateTable: {"name": "Standard"},
}

SCOPED_ENTITIES = TenantScopedEntity.__subclasses__()


def test_every_scoped_entity_has_sample_fields():
    assert set(SCOPED_ENTITIES) == set(SAMPLE_FIELDS)


def test_scope_policy_covers_every_operation_kind():
    assert set(SCOPE_POLICIES) == set(OperationKind)


async def _seed(base: InMemoryDataClient, entity: type[Entity]) -> None:
    for tenant_id in (TENANT_A, TENANT_A, TENANT_B):
        await base.create(entity, {**SAMPLE_FIELDS[entity], "tenant_id": tenant_id})


@pytest.mark.asyncio
@pytest.mark.parametrize("entity", SCOPED_ENTITIES, ids=lambda e: e.entity_name)
async def test_reads_never_cross_tenants(entity):
    base = InMemoryDataClient()
    await _seed(base, entity)
    scoped = ScopedDataAccess(base, TENANT_A)

    rows = await scoped.find_many(entity)
    assert len(rows) == 2
    assert {r.tenant_id for r in rows} == {TENANT_A}

    assert await scoped.count(entity) == 2
    first = await scoped.find_first(entity)
    assert first is not None and first.tenant_id == TENANT_A

    # A caller-supplied tenant filter is replaced by the bound tenant.
    overridden = await scoped.find_many(entity, {"tenant_id": TENANT_B})
    assert len(overridden) == 2
    assert {r.tenant_id for r in overridden} == {TENANT_A}
    assert await scoped.count(entity, {"tenant_id": {"in": [TENANT_A, TENANT_B]}}) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("entity", SCOPED_ENTITIES, ids=lambda e: e.entity_name)
async def test_writes_never_cross_tenants(entity):
    base = InMemoryDataClient()
    await _seed(base, entity)
    other = (await base.find_many(entity, {"tenant_id": TENANT_B}))[0]
    scoped = ScopedDataAccess(base, TENANT_A)

    with pytest.raises(RecordNotFoundError):
        await scoped.update(entity, {"id": other.id}, {})
    with pytest.raises(RecordNotFoundError):
        await scoped.delete(entity, {"id": other.id})
    assert await scoped.find_unique(entity, {"id": other.id}) is None

    assert await scoped.update_many(entity, {}, {}) == 2
    assert await scoped.delete_many(entity, {}) == 2

    assert await base.count(entity, {"tenant_id": TENANT_B}) == 1
    assert await base.count(entity, {"tenant_id": TENANT_A}) == 0


@pytest.mark.asyncio
async def test_update_cannot_target_row_by_spoofed_tenant_filter():
    base = InMemoryDataClient()
    victim = await base.create(Customer, {**SAMPLE_FIELDS[Customer], "tenant_id": TENANT_B})
    scoped = ScopedDataAccess(base, TENANT_A)

    with pytest.raises(RecordNotFoundError):
        await scoped.update(
            Customer, {"id": victim.id, "tenant_id": TENANT_B}, {"first_name": "Mallory"}
        )

    unchanged = await base.find_unique(Customer, {"id": victim.id})
    assert unchanged is not None and unchanged.first_name == "Ada"


@pytest.mark.asyncio
async def test_create_is_not_intercepted():
    base = InMemoryDataClient()
    scoped = ScopedDataAccess(base, TENANT_A)

    operation = DataOperation(
        OperationKind.CREATE,
        Customer,
        data={**SAMPLE_FIELDS[Customer], "tenant_id": TENANT_A},
    )
    assert scoped.scope(operation) is operation

    # The caller stamps the tenant explicitly; nothing is injected on create.
    created = await scoped.create(Customer, {**SAMPLE_FIELDS[Customer], "tenant_id": TENANT_A})
    assert created.tenant_id == TENANT_A


@pytest.mark.asyncio
async def test_unscoped_children_pass_through_unmodified():
    base = InMemoryDataClient()
    for customer_id in ("cust-a", "cust-b"):
        await base.create(
            Contact,
            {"customer_id": customer_id, "first_name": "C", "last_name": "D", "email": "c@d.io"},
        )
    scoped = ScopedDataAccess(base, TENANT_A)

    operation = DataOperation(OperationKind.FIND_MANY, Contact, where={"customer_id": "cust-a"})
    assert scoped.scope(operation) is operation
    assert len(await scoped.find_many(Contact)) == 2


def test_bound_tenant_overrides_caller_filter():
    scoped = ScopedDataAccess(InMemoryDataClient(), TENANT_A)

    for kind in OperationKind:
        if kind is OperationKind.CREATE:
            continue
        operation = DataOperation(kind, Customer, where={"tenant_id": TENANT_B, "email": "x"})
        assert scoped.scope(operation).where == {"tenant_id": TENANT_A, "email": "x"}
