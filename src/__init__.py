"""
Recovery Engine - fault recovery orchestration for interactive applications.

This package contains the recovery engine, organized into clean
architectural layers:

- domain: Error records, recovery entities, strategies and the orchestrator
- infrastructure: Persistence, process control, error handling, monitoring
- application: Use cases and configuration management
- presentation: Command line interface
"""

__version__ = "0.1.0"
__author__ = "Recovery Engine Team"

# Package metadata
__title__ = "recovery-engine"
__description__ = "Strategy-based recovery orchestration with data preservation"
__license__ = "MIT"

# Version info tuple
VERSION = tuple(map(int, __version__.split('.')))

__all__ = [
    "__version__",
    "VERSION",
]
