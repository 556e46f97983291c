import argparse
from collections import defaultdict

from app.db import SessionLocal
from app.errors import IdentifierValidationError
from app.models.projects import ProjectTask
from app.services.counters import counters
from app.services.numbering import parse_identifier, task_counter_name
from app.services.unit_of_work import UnitOfWork


def _highest_numbers(db) -> tuple[dict[str, int], int]:
    highest: dict[str, int] = defaultdict(int)
    skipped = 0
    for (number,) in db.query(ProjectTask.number).all():
        try:
            prefix, value = parse_identifier(number)
        except IdentifierValidationError:
            skipped += 1
            continue
        highest[prefix] = max(highest[prefix], value)
    return dict(highest), skipped


def reconcile_task_counters(db, dry_run: bool = False) -> dict[str, tuple[int | None, int]]:
    """Raise every task counter to the highest number already issued.

    Returns ``{counter_name: (before, after)}`` for counters that moved.
    """
    highest, skipped = _highest_numbers(db)
    if skipped:
        print(f"skipped {skipped} task(s) with unparseable numbers")

    changes: dict[str, tuple[int | None, int]] = {}
    for prefix, floor in sorted(highest.items()):
        name = task_counter_name(prefix)
        before = counters.peek(db, name)
        if before is not None and before >= floor:
            continue
        changes[name] = (before, floor)

    if dry_run or not changes:
        db.rollback()
        return changes

    with UnitOfWork(db):
        for name, (_, floor) in changes.items():
            counters.reconcile(db, name, floor)
    return changes


def main():
    parser = argparse.ArgumentParser(description="Align task counters with the numbers already issued.")
    parser.add_argument("--seed", action="store_true", help="Create the default task-type counters first.")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing.")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        if args.seed and not args.dry_run:
            created = counters.seed_defaults(db)
            print(f"seeded: {len(created)} counter(s)")
        changes = reconcile_task_counters(db, dry_run=args.dry_run)
        for name, (before, after) in changes.items():
            print(f"{name}: {before if before is not None else '-'} -> {after}")
        print(f"total: {len(changes)} {'would change' if args.dry_run else 'updated'}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
