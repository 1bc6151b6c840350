"""Infrastructure layer - configuration, persistence and external services."""
