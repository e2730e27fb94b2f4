"""Location permission providers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

_YES = frozenset({"y", "yes"})


class StaticPermission:
    """Permission fixed at construction time."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted

    def has_permission(self) -> bool:
        return self.granted

    async def request_permission(self) -> bool:
        return self.granted


class PromptPermission:
    """Ask on the terminal once; a grant lasts for the process lifetime.

    A refusal is not remembered, so the next request asks again.
    """

    def __init__(
        self,
        *,
        prompt: str = "Allow pylocate to read your current position? [y/N] ",
        ask: Callable[[str], str] = input,
    ) -> None:
        self._prompt = prompt
        self._ask = ask
        self._granted = False

    def has_permission(self) -> bool:
        return self._granted

    async def request_permission(self) -> bool:
        if self._granted:
            return True
        try:
            answer = await asyncio.to_thread(self._ask, self._prompt)
        except EOFError:
            return False
        self._granted = answer.strip().lower() in _YES
        return self._granted
