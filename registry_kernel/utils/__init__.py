"""Utility modules for the registry kernel."""

from registry_kernel.utils.idempotency import derived_key, generate_idempotency_key

__all__ = [
    "derived_key",
    "generate_idempotency_key",
]
