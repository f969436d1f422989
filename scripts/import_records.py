"""
CLI helper to bulk-import feedback or improvement records.

Rows come either from a JSON file holding a list of objects, or (for
feedback) from a plain-text file with one student name per line.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from feedback_backend.batch import import_records, student_rows
from feedback_backend.config import get_settings
from feedback_backend.dependencies import get_feedback_store, get_improvement_store
from feedback_backend.errors import PersistenceError, ValidationError
from feedback_backend.records import House

logger = logging.getLogger(__name__)


def _read_names(path: Path) -> list[str]:
    return [line.strip() for line in path.read_text(encoding="utf-8").splitlines()]


def main() -> int:
    parser = argparse.ArgumentParser(description="Bulk import records")
    parser.add_argument("kind", choices=["feedback", "improvements"])
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", type=Path, help="JSON file with a list of records")
    source.add_argument(
        "--names-file",
        type=Path,
        help="Text file with one student name per line (feedback only)",
    )
    parser.add_argument("--house", choices=[h.value for h in House])
    parser.add_argument("--rating", type=int, default=5)
    parser.add_argument("--comment", type=str, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")

    if args.kind == "feedback":
        store = get_feedback_store(get_settings())
    else:
        store = get_improvement_store(get_settings())

    if args.names_file:
        if args.kind != "feedback" or not args.house:
            parser.error("--names-file needs kind 'feedback' and --house")
        rows = student_rows(
            _read_names(args.names_file), args.house, args.rating, args.comment
        )
    else:
        rows = json.loads(args.file.read_text(encoding="utf-8"))
        if not isinstance(rows, list):
            parser.error(f"{args.file} must contain a JSON list")

    try:
        created = import_records(store, rows)
    except (ValidationError, PersistenceError) as exc:
        logger.error("Import failed: %s", exc.message)
        return 1

    for record in created:
        logger.info("Added: %s", record.id)
    logger.info("Total records added: %d", len(created))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
