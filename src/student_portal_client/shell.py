from __future__ import annotations

import asyncio
import getpass
from datetime import tzinfo

from loguru import logger

from student_portal_client.commands.router import CommandRouter
from student_portal_client.date_filter import PRESETS, parse_calendar_day
from student_portal_client.portal import PortalView, StudentPortal
from student_portal_client.services.attendance_presenter import AttendancePresenter


class PortalShell:
    _LINE_PREFIX = "portal> "
    _USER_PROMPT = "you> "

    def __init__(self, portal: StudentPortal, tz: tzinfo):
        self._portal = portal
        self._tz = tz
        self._presenter = AttendancePresenter(line_prefix=self._LINE_PREFIX)
        self._run_lock = asyncio.Lock()
        self._command_router = CommandRouter(
            on_help=self._on_help,
            on_refresh=self._on_refresh,
            on_presets=self._on_presets,
            on_preset=self._handle_preset_command,
            on_range=self._handle_range_command,
            on_clear=self._on_clear,
            on_logout=self._on_logout,
            on_unknown=self._on_unknown_command,
        )

    @property
    def requires_login(self) -> bool:
        return self._portal.view.requires_login

    async def start(self) -> None:
        self._show(await self._portal.load_session())

    async def login(self, email: str, password: str) -> bool:
        view = await self._portal.login(email, password)
        self._show(view)
        return not view.requires_login

    async def prompt_login(self) -> bool:
        """Ask for credentials and log in. Returns False once input is closed."""
        try:
            email = await asyncio.to_thread(input, "email> ")
            password = await asyncio.to_thread(getpass.getpass, "password> ")
        except (EOFError, KeyboardInterrupt):
            return False
        await self.login(email, password)
        return True

    async def run(self, user_message: str) -> None:
        async with self._run_lock:
            if await self._command_router.try_handle(user_message):
                return
            print(f"{self._LINE_PREFIX}Commands start with '/'. Type /help for the list.")

    def _show(self, view: PortalView) -> None:
        for line in self._presenter.format_view_lines(view):
            print(line)

    async def _on_help(self) -> None:
        print(f"{self._LINE_PREFIX}Available commands:")
        print(f"{self._LINE_PREFIX}- /help")
        print(f"{self._LINE_PREFIX}- /refresh")
        print(f"{self._LINE_PREFIX}- /presets")
        print(f"{self._LINE_PREFIX}- /preset <{'|'.join(PRESETS)}>")
        print(f"{self._LINE_PREFIX}- /range <start> <end>   (YYYY-MM-DD or M/D/YYYY)")
        print(f"{self._LINE_PREFIX}- /clear")
        print(f"{self._LINE_PREFIX}- /logout")

    async def _on_refresh(self) -> None:
        self._show(await self._portal.refresh_attendance())

    async def _on_presets(self) -> None:
        for line in self._presenter.format_preset_lines():
            print(line)

    async def _handle_preset_command(self, command: str) -> None:
        parts = command.split()
        if len(parts) != 2:
            print(f"{self._LINE_PREFIX}Usage: /preset <name> (see /presets)")
            return
        if parts[1] not in PRESETS:
            print(f"{self._LINE_PREFIX}Unknown preset: {parts[1]} (see /presets)")
            return
        self._show(await self._portal.apply_preset(parts[1]))

    async def _handle_range_command(self, command: str) -> None:
        parts = command.split()
        if len(parts) != 3:
            print(f"{self._LINE_PREFIX}Usage: /range <start> <end>")
            return
        start = parse_calendar_day(parts[1], self._tz)
        end = parse_calendar_day(parts[2], self._tz)
        if start is None or end is None:
            print(f"{self._LINE_PREFIX}Dates must look like 2026-01-15 or 1/15/2026")
            return
        if start > end:
            print(f"{self._LINE_PREFIX}Start date must not be after end date")
            return
        self._show(await self._portal.apply_range(start, end))

    async def _on_clear(self) -> None:
        self._show(await self._portal.clear_filter())

    async def _on_logout(self) -> None:
        self._show(await self._portal.logout())
        logger.debug("Shell returned to logged-out state")

    def _on_unknown_command(self, trimmed: str) -> None:
        print(f"{self._LINE_PREFIX}Unknown command: {trimmed}")
