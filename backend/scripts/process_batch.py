"""Run one payroll batch from the command line and print the result as JSON.

Usage:
  python scripts/process_batch.py batch.json --file punches.txt [--output result.json]

``batch.json`` is a PayrollBatch document (branch, period, directory,
settings, leaves).  Records come from ``--file`` when given, otherwise from
the document itself.
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from attendance_engine.core.config import settings  # noqa: E402
from attendance_engine.core.exceptions import BatchStructureError  # noqa: E402
from attendance_engine.schemas.payroll import PayrollBatch  # noqa: E402
from attendance_engine.services.pipeline import process_batch  # noqa: E402
from attendance_engine.services.punch_reader import read_punch_file  # noqa: E402

logger = logging.getLogger("process_batch")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compute payroll summaries for one attendance batch.")
    parser.add_argument("batch", help="PayrollBatch JSON file")
    parser.add_argument("--file", help="device export (.txt/.tsv/.csv/.xlsx)")
    parser.add_argument("--delimiter", help="column separator for text exports (default: tab)")
    parser.add_argument("--output", help="write the result here instead of stdout")
    parser.add_argument("--workers", type=int, default=None, help=f"worker threads (default: {settings.MAX_WORKERS})")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(levelname)s %(name)s: %(message)s")

    with open(args.batch, encoding="utf-8") as f:
        batch = PayrollBatch.model_validate_json(f.read())

    try:
        if args.file:
            with open(args.file, "rb") as f:
                records = read_punch_file(f, os.path.basename(args.file), delimiter=args.delimiter)
            batch = batch.model_copy(update={"records": records, "file_content": None})
        result = process_batch(batch, max_workers=args.workers)
    except BatchStructureError as exc:
        logger.error("Batch rejected: %s", exc)
        return 1

    payload = result.model_dump_json(indent=2)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(payload)
        logger.info("Result written to %s", args.output)
    else:
        print(payload)

    for line in result.warning_summary:
        logger.warning(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
