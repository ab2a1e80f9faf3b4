"""
Infrastructure for the recovery engine.

This package provides the collaborators the recovery domain talks to
through narrow boundaries:

- error_handling: exception hierarchy and the deduplicating error store
- persistence: key/value stores and design document persistence
- process: reload/relaunch primitives
- monitoring: structured logging setup and recovery metrics

All storage backends expose async interfaces so strategies never assume
a synchronous store, and all of them report failures as PersistenceError.
"""
