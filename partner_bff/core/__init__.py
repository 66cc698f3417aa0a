"""Core business logic: entities, lifecycle services, storage, reports, tokens."""
