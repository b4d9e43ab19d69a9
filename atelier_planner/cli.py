import argparse
import json
import logging
import sys

from atelier_planner.config import LOG_LEVELS, get_settings
from atelier_planner.formatter import ScheduleFormatter
from atelier_planner.models.scheduling_model import PlanningSnapshot
from atelier_planner.services.allocation_service import AllocationService
from atelier_planner.services.calendar_service import Calendar, default_week_slots
from atelier_planner.services.conflict_service import ConflictDetector
from atelier_planner.services.report_service import ReportService
from atelier_planner.utils.api_client import HostAPIClient
from atelier_planner.validator import SnapshotValidator, verify_placements

logger = logging.getLogger(__name__)


def load_snapshot(path: str) -> PlanningSnapshot:
    with open(path, encoding="utf-8") as fh:
        return PlanningSnapshot.model_validate(json.load(fh))


def main(argv=None) -> int:
    settings = get_settings()
    p = argparse.ArgumentParser(description="Atelier Planner - special-week workshop allocation")
    # Input modes
    p.add_argument('--snapshot', type=str, help='JSON planning snapshot (slots, rooms, workshops, ...)')
    p.add_argument('--from-host', action='store_true', help='Fetch the snapshot from the host web application')
    p.add_argument('--host-url', type=str, default=settings.host_api_url)

    # Allocation
    p.add_argument('--max-occurrences', type=int, default=settings.max_occurrences,
                   help='Cap on occurrences per workshop (0 = until nothing fits)')

    # Output
    p.add_argument('--out', type=str, default=None, help='Write the allocation result as JSON')
    p.add_argument('--push', action='store_true', help='Send new placements back to the host')
    p.add_argument('--log-level', type=str.upper, choices=sorted(LOG_LEVELS), default=settings.log_level)
    args = p.parse_args(argv)

    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    client = None
    if args.snapshot:
        snapshot = load_snapshot(args.snapshot)
    elif args.from_host:
        client = HostAPIClient(args.host_url, settings.host_api_token)
        snapshot = client.fetch_snapshot()
    else:
        raise SystemExit("Provide --snapshot FILE or --from-host")

    if not snapshot.slots:
        snapshot.slots = default_week_slots(short_day=settings.short_day)

    errors = SnapshotValidator(snapshot).validate()
    if errors:
        for e in errors:
            print(f"Error: {e}", file=sys.stderr)
        return 1

    calendar = Calendar(snapshot.slots, short_day=settings.short_day)
    service = AllocationService(calendar, snapshot.rooms, snapshot.availability, snapshot.teacher_loads,
                                max_occurrences=args.max_occurrences)
    result = service.allocate(snapshot.workshops, snapshot.placements, snapshot.duties,
                              catalogue=snapshot.workshops)

    # === Sanity check over old and new placements together ===
    violations = verify_placements(calendar, snapshot.workshops, snapshot.placements + result.placed,
                                   snapshot.load_max())
    for v in violations:
        logger.error("Invalid allocation: %s", v)

    detector = ConflictDetector(calendar, snapshot.workshops, snapshot.placements, snapshot.enrollments,
                                snapshot.duties)
    formatter = ScheduleFormatter(ReportService(detector, snapshot.rooms, snapshot.teacher_loads))
    print(formatter.to_text(result))

    if args.out:
        with open(args.out, "w", encoding="utf-8") as fh:
            json.dump(formatter.to_json(result), fh, indent=2)
        print(f"Wrote {args.out}")

    if args.push:
        if client is None:
            client = HostAPIClient(args.host_url, settings.host_api_token)
        client.push_placements(result.placed)
        print(f"Pushed {len(result.placed)} placements to {args.host_url}")

    return 1 if violations else 0


if __name__ == "__main__":
    sys.exit(main())
