"""
Database package for ServerSense.

Public API:
    - db_connection: Shared aiosqlite connection manager
    - Database: Guild policy, warning, audit log and conversation storage
"""
