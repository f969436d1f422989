"""
Bulk maintenance operations used by the scripts in ``scripts/``.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Literal, Sequence

from feedback_backend.errors import ValidationError
from feedback_backend.records import FEEDBACK, House, StoredRecord
from feedback_backend.store import RecordStore
from feedback_backend.validation import validate_fields

logger = logging.getLogger(__name__)

MatchMode = Literal["exact", "prefix"]


def import_records(store: RecordStore, rows: Sequence[Any]) -> list[StoredRecord]:
    """
    Validate every row, then write them all. Nothing is written when any row
    is invalid; the error names the offending row.
    """
    for index, row in enumerate(rows):
        try:
            validate_fields(store.kind, row)
        except ValidationError as exc:
            raise ValidationError(f"Row {index}: {exc.message}") from exc
    created = store.create_many(rows)
    logger.info("Imported %d %s record(s)", len(created), store.kind.name)
    return created


def student_rows(
    names: Iterable[str],
    house: House | str,
    rating: int = 5,
    comment: str | None = None,
) -> list[dict]:
    """Feedback rows for a list of student names in one house."""
    house_name = House(house).value
    if comment is None:
        comment = f"Student entry - {house_name} House"
    return [
        {"studentName": name, "house": house_name, "rating": rating, "comment": comment}
        for name in names
        if name.strip()
    ]


def _matches(student_name: str, target: str, match: MatchMode) -> bool:
    student_name = student_name.strip().casefold()
    target = target.strip().casefold()
    if match == "prefix":
        return student_name.startswith(target)
    return student_name == target


def remove_students(
    store: RecordStore,
    house: House | str,
    names: Iterable[str],
    match: MatchMode = "exact",
) -> dict[str, int]:
    """
    Delete the feedback of the named students in ``house``.

    Names are compared case-insensitively; ``match="prefix"`` also removes
    every student whose name starts with the given one. Returns how many
    records were removed per name.
    """
    if store.kind is not FEEDBACK:
        raise ValueError("remove_students only applies to feedback records")
    house_name = House(house).value
    removed: dict[str, int] = {}
    records = [r for r in store.list_all() if r.house == house_name]
    for name in names:
        count = 0
        for record in records:
            if _matches(record.studentName, name, match):
                store.delete_by_id(record.id)
                count += 1
        records = [r for r in records if not _matches(r.studentName, name, match)]
        removed[name] = count
        logger.info("Removed %d feedback(s) for: %s", count, name)
    return removed
