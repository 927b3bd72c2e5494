from __future__ import annotations

from student_portal_client.date_filter import PRESETS
from student_portal_client.portal import PortalView
from student_portal_client.records import CanonicalRecord


class AttendancePresenter:
    def __init__(self, *, line_prefix: str):
        self._line_prefix = line_prefix

    def format_record_line(self, index: int, record: CanonicalRecord) -> str:
        return (
            f"{self._line_prefix}{index:>3}. {record.date:<10} "
            f"{record.status.value.upper():<7} {record.subject}"
        )

    def format_header_lines(self, view: PortalView) -> list[str]:
        return [
            f"{self._line_prefix}Welcome back, {view.display_name} <{view.display_email}>",
        ]

    def format_summary_line(self, view: PortalView) -> str:
        summary = view.summary
        return (
            f"{self._line_prefix}Total days: {summary.total} | Present: {summary.present} | "
            f"Absent: {summary.absent} | Late: {summary.late}"
        )

    def format_view_lines(self, view: PortalView) -> list[str]:
        if view.requires_login:
            lines = [f"{self._line_prefix}Login required."]
            if view.error:
                lines.append(f"{self._line_prefix}{view.error}")
            return lines

        lines = self.format_header_lines(view)
        if view.error:
            lines.append(f"{self._line_prefix}Error: {view.error}")
        lines.append(self.format_summary_line(view))
        if view.filter_label:
            lines.append(f"{self._line_prefix}Filter: {view.filter_label} (/clear to show all)")

        if not view.records:
            lines.append(f"{self._line_prefix}No attendance records yet. Use /refresh to try again.")
            return lines

        lines.append(f"{self._line_prefix}Attendance history:")
        for index, record in enumerate(view.records, 1):
            lines.append(self.format_record_line(index, record))
        return lines

    def format_preset_lines(self) -> list[str]:
        lines = [f"{self._line_prefix}Date presets:"]
        for name, label in PRESETS.items():
            lines.append(f"{self._line_prefix}- {name:<11} {label}")
        return lines
