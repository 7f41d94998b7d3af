"""
Database package for Clubguard.

Public API:
    - ConnectionManager: single long-lived aiosqlite connection
    - SchemaManager: creates the security_events table and indexes
"""
