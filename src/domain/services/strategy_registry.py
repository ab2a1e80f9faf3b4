"""
Name-keyed registry of recovery strategies.
"""

import logging
import threading
from typing import Dict, List, Optional, Sequence

from ..entities.error_record import ErrorRecord
from ..strategies.base import RecoveryStrategy


class StrategyRegistry:
    """
    Holds at most one strategy per name and produces execution orders.

    Registering a strategy under an existing name replaces the previous
    instance, so registration is idempotent.
    """

    def __init__(self):
        self._strategies: Dict[str, RecoveryStrategy] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def register(self, strategy: RecoveryStrategy):
        if not strategy.name:
            raise ValueError(f"Strategy {strategy.__class__.__name__} has no name")

        with self._lock:
            replaced = strategy.name in self._strategies
            self._strategies[strategy.name] = strategy

        if replaced:
            self.logger.debug(f"Replaced recovery strategy {strategy.name}")
        else:
            self.logger.debug(f"Registered recovery strategy {strategy.name} (priority {strategy.priority})")

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._strategies.pop(name, None) is not None

    def get(self, name: str) -> Optional[RecoveryStrategy]:
        with self._lock:
            return self._strategies.get(name)

    def all(self) -> List[RecoveryStrategy]:
        """All strategies by ascending priority, name as tie-break."""
        with self._lock:
            strategies = list(self._strategies.values())
        return sorted(strategies, key=lambda s: (s.priority, s.name))

    def names(self) -> List[str]:
        return [strategy.name for strategy in self.all()]

    def ordered_for(self, error: ErrorRecord, preferred_order: Sequence[str] = ()) -> List[RecoveryStrategy]:
        """
        Execution order for ``error``.

        Preferred names come first, in the given order and each only once,
        provided they are registered and applicable. The remaining
        applicable strategies follow by ascending priority.
        """
        ordered: List[RecoveryStrategy] = []
        seen = set()

        for name in preferred_order:
            if name in seen:
                continue
            strategy = self.get(name)
            if strategy is None:
                self.logger.debug(f"Preferred strategy {name} is not registered")
                continue
            if self._applies(strategy, error):
                ordered.append(strategy)
                seen.add(name)

        for strategy in self.all():
            if strategy.name in seen:
                continue
            if self._applies(strategy, error):
                ordered.append(strategy)
                seen.add(strategy.name)

        return ordered

    def _applies(self, strategy: RecoveryStrategy, error: ErrorRecord) -> bool:
        try:
            return bool(strategy.can_handle(error))
        except Exception as e:
            self.logger.error(f"Applicability check of {strategy.name} failed: {str(e)}")
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._strategies)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._strategies
