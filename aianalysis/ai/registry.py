"""
Service Registry
================

Single ownership table of live services: ``service_id -> ServiceEntry``.
Dispatch lookups take the read side of the lock; lifecycle operations take
the write side, so no request observes a half-built or half-torn-down entry.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional

from .circuit_breaker import CircuitBreaker
from .metrics import MetricsCollector
from .providers.base import AIProvider
from ..config.settings import AIServiceType
from ..utils.logging import get_logger_for_component


class AsyncReadWriteLock:
    """Writer-preferring reader/writer lock for asyncio tasks."""

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._waiting_writers == 0)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass
class ServiceEntry:
    """Provider, breaker and metrics of one live service."""
    service_id: AIServiceType
    provider: AIProvider
    breaker: CircuitBreaker
    metrics: MetricsCollector


class ServiceRegistry:
    """Live services keyed by service id, in registration order."""

    def __init__(self):
        self._entries: Dict[AIServiceType, ServiceEntry] = {}
        self.lock = AsyncReadWriteLock()
        self.logger = get_logger_for_component("service_registry")

    # Unlocked primitives; callers hold the appropriate side of ``lock``

    def _contains(self, service_id: AIServiceType) -> bool:
        return service_id in self._entries

    def _keys(self) -> List[AIServiceType]:
        return list(self._entries)

    def _values(self) -> List[ServiceEntry]:
        return list(self._entries.values())

    def _reorder(self, order: List[AIServiceType]) -> None:
        """Arrange entries to follow ``order``; ids not in ``order`` go last."""
        ranked = sorted(
            self._entries.items(),
            key=lambda item: order.index(item[0]) if item[0] in order else len(order),
        )
        self._entries = dict(ranked)

    def _add(self, entry: ServiceEntry) -> None:
        self._entries[entry.service_id] = entry
        self.logger.debug(f"Registered {entry.service_id.value}")

    def _pop(self, service_id: AIServiceType) -> Optional[ServiceEntry]:
        return self._entries.pop(service_id, None)

    def _pop_all(self) -> List[ServiceEntry]:
        entries = list(self._entries.values())
        self._entries.clear()
        return entries

    # Locked operations

    async def get(self, service_id: AIServiceType) -> Optional[ServiceEntry]:
        async with self.lock.read():
            return self._entries.get(service_id)

    async def snapshot(self) -> Dict[AIServiceType, ServiceEntry]:
        """Shallow copy of the table, safe to iterate after the lock is released."""
        async with self.lock.read():
            return dict(self._entries)

    async def keys(self) -> List[AIServiceType]:
        async with self.lock.read():
            return self._keys()

    def __len__(self) -> int:
        return len(self._entries)
