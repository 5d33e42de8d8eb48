"""Core infrastructure: configuration, database, auth and model clients."""
