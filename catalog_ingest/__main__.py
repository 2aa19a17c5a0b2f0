"""Command-line import: python -m catalog_ingest products.csv [--dry-run]"""

import argparse
import asyncio
import logging
import sys

from catalog_ingest.config import get_settings
from catalog_ingest.errors import CSVStructureError
from catalog_ingest.logging_config import setup_logging_from_settings
from catalog_ingest.models import ImportReport
from catalog_ingest.service import import_file

logger = logging.getLogger("catalog_ingest.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog_ingest",
        description="Import a product CSV into the catalog",
    )
    parser.add_argument("path", help="CSV file to import")
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Parse and classify only; print the preview",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging_from_settings(settings)

    try:
        result = asyncio.run(import_file(args.path, settings=settings, dry_run=args.dry_run))
    except CSVStructureError as e:
        logger.error("Import aborted: %s", e)
        return 2
    except FileNotFoundError as e:
        logger.error("Cannot read %s: %s", args.path, e)
        return 2

    print(result.model_dump_json(indent=2))
    if isinstance(result, ImportReport):
        return 1 if result.failed else 0
    return 0 if result.is_valid else 1


if __name__ == "__main__":
    sys.exit(main())
