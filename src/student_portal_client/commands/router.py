from __future__ import annotations

from collections.abc import Awaitable, Callable


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_refresh: Callable[[], Awaitable[None]],
        on_presets: Callable[[], Awaitable[None]],
        on_preset: Callable[[str], Awaitable[None]],
        on_range: Callable[[str], Awaitable[None]],
        on_clear: Callable[[], Awaitable[None]],
        on_logout: Callable[[], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_refresh = on_refresh
        self._on_presets = on_presets
        self._on_preset = on_preset
        self._on_range = on_range
        self._on_clear = on_clear
        self._on_logout = on_logout
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        command, _, _ = trimmed.partition(" ")
        if command == "/help":
            await self._on_help()
            return True
        if command == "/refresh":
            await self._on_refresh()
            return True
        if command == "/presets":
            await self._on_presets()
            return True
        if command == "/preset":
            await self._on_preset(trimmed)
            return True
        if command == "/range":
            await self._on_range(trimmed)
            return True
        if command == "/clear":
            await self._on_clear()
            return True
        if command == "/logout":
            await self._on_logout()
            return True

        self._on_unknown(trimmed)
        return True
