"""Infrastructure layer - vendor SDK adapters, configuration and storage."""
