"""
Core infrastructure: settings, database, security, retry, and cache.

Submodules are imported directly. Importing this package does not load settings or
create the database engine, so the session client can use app.core.retry on its own.
"""
