from atelier_planner.models.scheduling_model import AllocationResult
from atelier_planner.services.report_service import ReportService


class ScheduleFormatter:
    """Handles transforming allocation output into JSON or printable format."""

    def __init__(self, reports: ReportService):
        self.reports = reports

    def to_json(self, result: AllocationResult) -> dict:
        return {
            "placed": [p.model_dump() for p in result.placed],
            "failures": [f.model_dump(mode="json") for f in result.failures],
            "schedule": self.reports.placement_rows(result.placed),
            "summary": {
                "placed": len(result.placed),
                "workshops_placed": len({p.workshop_id for p in result.placed}),
                "failed": len(result.failures),
            },
        }

    def to_text(self, result: AllocationResult) -> str:
        rows = self.reports.placement_rows(result.placed)
        lines = ["WEEKLY TIMETABLE:", ""]
        for day in self.reports.calendar.days:
            lines.append(day.value.capitalize())
            entries = [r for r in rows if r["day"] == day.value]
            if not entries:
                lines.append("  (no workshops)")
            for e in entries:
                lines.append(f"  {e['period']} x{e['slot_count']}, {e['workshop_name']}, "
                             f"{e['room']}, Teachers: {', '.join(e['teachers'])}")
            lines.append("")
        if result.failures:
            lines.append("NOT PLACED:")
            for f in result.failures:
                lines.append(f"  {f.workshop_name} ({f.workshop_id}): {f.reason.value}")
        return "\n".join(lines)
