"""
Command line entry point for the delegate relayer worker.
"""
import sys
import logging
import argparse
from typing import Optional, List

from . import __version__
from .config import RelayerConfig
from .exceptions import RelayerError, PassInProgressError
from .models import RequestStatus
from .store.json_store import JsonRequestStore
from .worker import PassLock, build_reconciler, run_exclusive_pass, run_forever

logger = logging.getLogger("delegate_relayer")


def _load_config(path: Optional[str]) -> RelayerConfig:
    if path:
        return RelayerConfig.from_toml(path)
    return RelayerConfig.from_env()


def _cmd_run(args: argparse.Namespace, config: RelayerConfig) -> int:
    reconciler = build_reconciler(config)
    lock = PassLock(str(config.resolved_lock_path))

    if args.once:
        try:
            report = run_exclusive_pass(reconciler, lock)
        except PassInProgressError as e:
            logger.warning(str(e))
            return 2
        print(
            f"starting_nonce={report.starting_nonce} next_nonce={report.next_nonce} "
            f"published={report.published} mined={report.mined} "
            f"failed={report.failed} skipped={report.skipped}"
        )
        return 0

    interval = args.interval if args.interval is not None else config.poll_interval
    logger.info(f"Running reconciliation every {interval}s (store={config.resolved_store_path})")
    try:
        run_forever(reconciler, lock, interval)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")
    return 0


def _cmd_status(args: argparse.Namespace, config: RelayerConfig) -> int:
    store = JsonRequestStore(
        str(config.resolved_store_path),
        default_expires_at_seconds=config.default_expires_at_seconds
    )
    for status in RequestStatus:
        print(f"{status.name.lower():<10} {store.count([status])}")
    print(f"{'total':<10} {store.count()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="delegate-relayer",
        description="Publish delegated transaction requests from a single relayer wallet."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="TOML config file with a [relayer] table")
    parser.add_argument("--debug", help="Enable debug output", action="store_true")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run reconciliation passes")
    run_parser.add_argument("--once", help="Run a single pass and exit", action="store_true")
    run_parser.add_argument("--interval", type=float, help="Seconds between passes")
    run_parser.set_defaults(handler=_cmd_run)

    status_parser = subparsers.add_parser("status", help="Show request counts per status")
    status_parser.set_defaults(handler=_cmd_status)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        config = _load_config(args.config)
        return args.handler(args, config)
    except RelayerError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
