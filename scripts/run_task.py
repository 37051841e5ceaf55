#!/usr/bin/env python3
"""
Run one task in-process, without going through Celery.

Usage:
    python scripts/run_task.py <task id>
"""
import argparse
import asyncio
import sys

from a11y_service.features.scan.workers.tasks import run_task_once
from a11y_service.platform.exceptions import ServiceError


def main():
    parser = argparse.ArgumentParser(description="Run an accessibility audit task once")
    parser.add_argument("task_id", help="Id of the task to run")
    args = parser.parse_args()

    try:
        result = asyncio.run(run_task_once(args.task_id))
    except ServiceError as e:
        print(f"Run failed: {e.message}", file=sys.stderr)
        sys.exit(1)

    count = result["count"]
    print(f"Result {result['id']}: {count['total']} issues "
          f"({count['error']} errors, {count['warning']} warnings, {count['notice']} notices)")
    if count.get("failed"):
        print(f"{count['failed']} page(s) could not be checked")


if __name__ == "__main__":
    main()
