"""
Remove the feedback of named students from one house.

Names match case-insensitively and exactly by default; pass --prefix to also
remove every student whose name starts with a given name.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from feedback_backend.batch import remove_students
from feedback_backend.config import get_settings
from feedback_backend.dependencies import get_feedback_store
from feedback_backend.errors import RecordError
from feedback_backend.records import House

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Remove students from a house")
    parser.add_argument("names", nargs="*", help="Student names to remove")
    parser.add_argument(
        "--house", required=True, choices=[h.value for h in House]
    )
    parser.add_argument(
        "--names-file", type=Path, help="Text file with one student name per line"
    )
    parser.add_argument(
        "--prefix",
        action="store_true",
        help="Match names by case-insensitive prefix instead of exactly",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")

    names = list(args.names)
    if args.names_file:
        names.extend(
            line.strip()
            for line in args.names_file.read_text(encoding="utf-8").splitlines()
            if line.strip()
        )
    if not names:
        parser.error("give at least one name or --names-file")

    try:
        removed = remove_students(
            get_feedback_store(get_settings()),
            args.house,
            names,
            match="prefix" if args.prefix else "exact",
        )
    except RecordError as exc:
        logger.error("Error removing students: %s", exc.message)
        return 1

    logger.info(
        "Removed %d feedback(s) from %s house", sum(removed.values()), args.house
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
