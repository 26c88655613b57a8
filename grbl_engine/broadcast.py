#!/usr/bin/env python3
# GRBL Engine (GRBL-HAL machine control engine)
# Copyright (C) 2026 Bob Kolbasowski
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Bounded fan-out of status snapshots to independent subscribers.

Each subscriber owns a small queue. Publishing never blocks the poller: when a
subscriber's queue is full its oldest snapshot is dropped, so a slow reader
sees gaps but always ends up with the latest value. Subscribers only receive
snapshots published after they subscribed.

All methods must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Generic, Optional, TypeVar

from .utils.constants import STATUS_BROADCAST_CAPACITY

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    def __init__(self, broadcast: "Broadcast[T]", capacity: int):
        self._broadcast = broadcast
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self.missed = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, item: object) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            if item is not _CLOSED:
                self.missed += 1
        self._queue.put_nowait(item)

    def _take(self, item: object) -> Optional[T]:
        if item is _CLOSED:
            self._closed = True
            return None
        return item  # type: ignore[return-value]

    async def get(self) -> Optional[T]:
        """Wait for the next snapshot; None once the broadcast has closed."""
        if self._closed and self._queue.empty():
            return None
        return self._take(await self._queue.get())

    def get_nowait(self) -> Optional[T]:
        """Return the next queued snapshot.

        Raises:
            asyncio.QueueEmpty: If nothing is queued
        """
        if self._closed and self._queue.empty():
            return None
        return self._take(self._queue.get_nowait())

    def close(self) -> None:
        """Unsubscribe. Pending snapshots are discarded."""
        if self._closed:
            return
        self._broadcast._remove(self)
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        item = await self.get()
        if item is None:
            raise StopAsyncIteration
        return item


class Broadcast(Generic[T]):
    def __init__(self, capacity: int = STATUS_BROADCAST_CAPACITY):
        if capacity < 1:
            raise ValueError("Broadcast capacity must be at least 1")
        self.capacity = capacity
        self._subscribers: list[Subscription[T]] = []
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription[T]:
        sub: Subscription[T] = Subscription(self, self.capacity)
        if self._closed:
            sub._push(_CLOSED)
        else:
            self._subscribers.append(sub)
        return sub

    def publish(self, item: T) -> int:
        """Deliver ``item`` to every subscriber; returns how many got it."""
        if self._closed:
            return 0
        for sub in self._subscribers:
            sub._push(item)
        return len(self._subscribers)

    def close(self) -> None:
        """End every subscription; readers drain what is queued, then stop."""
        if self._closed:
            return
        self._closed = True
        for sub in self._subscribers:
            sub._push(_CLOSED)
        self._subscribers.clear()
        logger.debug("Status broadcast closed")

    def _remove(self, sub: Subscription[T]) -> None:
        try:
            self._subscribers.remove(sub)
        except ValueError:
            pass
