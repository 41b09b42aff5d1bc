"""Core infrastructure: configuration, database, clients and errors."""
