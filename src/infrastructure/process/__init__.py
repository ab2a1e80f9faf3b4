"""
Process control boundary (reload / relaunch).
"""

from .process_control import (
    ProcessControl,
    CallbackProcessControl,
    ExecProcessControl,
    schedule_fallback_reload
)

__all__ = [
    "ProcessControl",
    "CallbackProcessControl",
    "ExecProcessControl",
    "schedule_fallback_reload"
]
