"""
Command line interface for store audit maintenance.

Batch jobs that must follow exactly the same rules as the API:
status recompute for every store, and audit resets.
"""
import argparse
import asyncio
import json
import logging
import sys

from storeaudit.core.config import settings
from storeaudit.core.exceptions import AppException
from storeaudit.db.base import async_session_factory, engine, init_models
from storeaudit.services.store_status import StoreStatusService

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


async def _run_in_transaction(operation, dry_run: bool = False):
    """Run ``operation(service)`` in one session; commit unless dry_run."""
    async with async_session_factory() as session:
        try:
            result = await operation(StoreStatusService(session))
            if dry_run:
                logger.info("Dry run: rolling back")
                await session.rollback()
            else:
                await session.commit()
            return result
        except Exception:
            await session.rollback()
            raise


async def recompute_statuses(args):
    """Recompute every store status with the single-store rules."""
    counts = await _run_in_transaction(
        lambda svc: svc.recompute_all_store_statuses(), dry_run=args.dry_run
    )
    print(json.dumps(counts, indent=2, sort_keys=True))


async def reset_store(args):
    """Delete all audits/images of one store and reset its status."""
    outcome = await _run_in_transaction(lambda svc: svc.reset_store_audits(args.store_id))
    print(json.dumps({
        "storeId": args.store_id,
        "auditsDeleted": outcome["audits_deleted"],
        "imagesDeleted": outcome["images_deleted"],
    }, indent=2))


async def reset_all(args):
    """Reset audit data for every store."""
    if not args.yes:
        logger.error("Refusing to reset all stores without --yes")
        return 2
    summary = await _run_in_transaction(lambda svc: svc.reset_all_store_audits())
    print(json.dumps(summary, indent=2, sort_keys=True))


async def init_db(args):
    """Create tables directly from the models (local SQLite)."""
    await init_models()
    logger.info("Tables created on %s", settings.database_url)


_COMMANDS = {
    "recompute-statuses": recompute_statuses,
    "reset-store": reset_store,
    "reset-all": reset_all,
    "init-db": init_db,
}


async def _dispatch(handler, args) -> int:
    try:
        code = await handler(args)
    except AppException as exc:
        logger.error("%s: %s", exc.code, exc.message)
        return 1
    finally:
        await engine.dispose()
    return code or 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storeaudit", description="Store audit maintenance CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    recompute_parser = subparsers.add_parser(
        "recompute-statuses", help="Recompute the status of every store"
    )
    recompute_parser.add_argument("--dry-run", action="store_true", help="Do not commit changes")

    reset_parser = subparsers.add_parser("reset-store", help="Reset audit data of one store")
    reset_parser.add_argument("store_id", help="Store ID")

    reset_all_parser = subparsers.add_parser("reset-all", help="Reset audit data of every store")
    reset_all_parser.add_argument("--yes", action="store_true", help="Confirm the reset")

    subparsers.add_parser("init-db", help="Create database tables from the models")
    return parser


def main(argv=None) -> int:
    """Main entry point for the command line interface."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2
    return asyncio.run(_dispatch(handler, args))


if __name__ == "__main__":
    sys.exit(main())
