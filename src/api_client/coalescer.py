"""
Single-flight registry for in-flight read requests.

Concurrent identical requests (same fingerprint) share one network call instead of each
making their own. Uses asyncio.Task so only one fetch runs while others await its result.
"""
import asyncio
import hashlib
import json
from collections.abc import Awaitable, Callable
from typing import Any


def request_fingerprint(
    method: str,
    endpoint: str,
    body: Any = None,
    credential: str | None = None,
) -> str:
    """
    Identify a request by method, endpoint, and serialized body.

    The credential is folded in as a short digest so a read issued by one account is
    never handed to a caller acting for another account after a switch.
    """
    serialized = json.dumps(body, sort_keys=True, default=str) if body is not None else ""
    fingerprint = f"{method.upper()}:{endpoint}:{serialized}"
    if credential:
        digest = hashlib.sha256(credential.encode()).hexdigest()[:16]
        fingerprint = f"{fingerprint}:{digest}"
    return fingerprint


class Coalescer:
    """Registry of pending requests keyed by fingerprint. Never outlives a request."""

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task] = {}

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> tuple[Any, bool]:
        """
        If `key` is already in-flight, await the existing task.
        Otherwise, create a new task for `fn()` and share it.

        The key is removed as soon as the task settles, whether it returned or raised,
        so the next identical call always goes to the network.

        Returns:
            (result, was_coalesced): was_coalesced=True for waiters,
            False for the originator.
        """
        existing = self._in_flight.get(key)
        if existing is not None:
            # shield: a cancelled waiter must not cancel the shared call
            return await asyncio.shield(existing), True

        task = asyncio.create_task(fn())
        self._in_flight[key] = task
        task.add_done_callback(lambda _: self._release(key, task))
        return await asyncio.shield(task), False

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)
