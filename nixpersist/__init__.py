"""nixpersist — idempotent configuration-mutation engine for host persistence techniques."""

__version__ = "0.1.0"
