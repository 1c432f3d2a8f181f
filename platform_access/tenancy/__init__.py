"""Tenant resolution and tenant-scoped data access."""
