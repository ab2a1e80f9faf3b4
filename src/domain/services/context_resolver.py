"""
Resolution of the recovery context through a pluggable provider.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from ..entities.recovery import RecoveryContext

from ...infrastructure.error_handling.exceptions import ContextResolutionError


ContextProvider = Callable[[], Union[Awaitable[Any], Any]]


class ContextResolver:
    """
    Builds a fresh RecoveryContext for each recovery attempt.

    The provider may be sync or async and may return a RecoveryContext or a
    mapping. Anything else, or any exception, degrades to a minimal context;
    ``resolve`` never raises.
    """

    def __init__(self, provider: Optional[ContextProvider] = None):
        self.provider = provider
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def set_provider(self, provider: Optional[ContextProvider]):
        self.provider = provider

    async def resolve(self) -> RecoveryContext:
        if self.provider is None:
            return RecoveryContext.minimal()

        try:
            return await self._call_provider()
        except ContextResolutionError as e:
            self.logger.warning(f"{e.message}, using minimal context")
        except Exception as e:
            self.logger.warning(f"Context provider failed, using minimal context: {str(e)}")

        return RecoveryContext.minimal()

    async def _call_provider(self) -> RecoveryContext:
        value = self.provider()
        if inspect.isawaitable(value):
            value = await value

        if isinstance(value, RecoveryContext):
            return value

        if isinstance(value, Mapping):
            return RecoveryContext.from_mapping(value)

        raise ContextResolutionError(f"Context provider returned {type(value).__name__}")
