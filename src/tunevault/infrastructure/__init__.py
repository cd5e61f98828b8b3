"""Infrastructure layer - persistence, external integrations, observability."""
