"""
Domain layer for the recovery engine.

This module contains the core recovery logic:
- Entities: error records, recovery context, results and lifecycle events
- Strategies: the polymorphic units of remediation
- Services: strategy registry, notification channel, context resolution
  and the recovery orchestrator

The domain layer has no knowledge of concrete storage backends or of the
process it runs in; those arrive through the persistence and process
control boundaries in the infrastructure layer.
"""

__all__ = []
