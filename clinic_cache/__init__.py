"""Tenant-scoped caching layer for the clinic CRM platform."""

__version__ = "1.0.0"
