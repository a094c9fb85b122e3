"""Core engine — models, services, configuration, observability."""
