"""Domain layer - entities, value objects and pure services."""
