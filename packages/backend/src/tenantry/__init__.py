"""Tenantry — multi-tenant application platform backend.

Users belong to companies, companies own workspaces, workspaces own apps,
and apps own dynamically-typed data tables. This package holds the session
and credential lifecycle, the request context pipeline that scopes every
request to a tenant, and the filter algebra used for tenant-safe queries.
"""

__version__ = "0.1.0"
