"""
Per-domain repository modules for database access.

`boards` exposes a class because it carries the injected event bus;
memberships, join requests and audit logs are plain functions over a
`Session`.
"""
