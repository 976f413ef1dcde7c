# scripts/reassign_orphaned_slots.py
"""
One-off repair: hand consultation slots owned by accounts that are not
instructors (deleted users, demoted roles, bad seed data) to one
instructor.

Usage:
    python -m scripts.reassign_orphaned_slots --instructor-email coach@example.com
"""

from __future__ import annotations

import argparse

from consultation.db.session import SessionLocal
from consultation.errors import SchedulingError
from consultation.services.instructor_directory import InstructorDirectory
from consultation.services.slot_service import reassign_orphaned_slots


def run_once(instructor_email: str) -> int:
    db = SessionLocal()
    try:
        try:
            result = reassign_orphaned_slots(
                db,
                directory=InstructorDirectory(db),
                instructor_email=instructor_email,
            )
        except SchedulingError as e:
            print(f"[reassign_orphaned_slots] {e.kind}: {e.message}")
            return 1

        if result.fixed == 0:
            print(
                "[reassign_orphaned_slots] No orphaned slots found "
                f"({result.total_slots} slots checked)"
            )
        else:
            print(
                f"[reassign_orphaned_slots] Fixed {result.fixed} slot(s), "
                f"reassigned to {result.instructor_name} ({instructor_email})"
            )
        return 0
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--instructor-email",
        required=True,
        help="Email of the instructor who should receive the orphaned slots",
    )
    args = parser.parse_args()
    raise SystemExit(run_once(instructor_email=args.instructor_email))


if __name__ == "__main__":
    main()
