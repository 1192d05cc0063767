"""
Rebalance a Trading 212 account toward the target weights in a CSV file.

Account credentials come from the environment (see EnvAccountContextProvider);
tuning comes from the YAML file named by --config or CONFIG_PATH.
"""
import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from broker_gateway import ProgressSink, TargetAllocation
from rebalance_engine import RebalanceOrchestrator
from rebalancer_config import AppConfig, load_config
from t212_connector import AlgoliaTickerResolver, EnvAccountContextProvider, T212Client
from .allocation_file import load_allocations
from .logger import configure_root_logger
from .progress import CompositeProgressSink, LoggingProgressSink, NtfyProgressSink

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config.yaml'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='t212-rebalance',
        description='Rebalance a Trading 212 portfolio toward target weights.'
    )
    parser.add_argument('allocations', help='CSV file of ticker,weight rows (weights sum to 1.0)')
    parser.add_argument('--config', help='YAML configuration file (default: $CONFIG_PATH or config.yaml)')
    parser.add_argument('--preview', action='store_true', help='calculate orders without placing them')
    return parser


def resolve_config(config_arg: Optional[str]) -> AppConfig:
    """An explicitly named config file must exist; the default one is optional"""
    explicit = config_arg or os.getenv('CONFIG_PATH')
    config_path = Path(explicit or DEFAULT_CONFIG_PATH)

    if explicit or config_path.exists():
        return load_config(config_path)

    logger.info(f"No {DEFAULT_CONFIG_PATH} found, using default configuration")
    return AppConfig()


def build_progress_sink(config: AppConfig) -> ProgressSink:
    sinks: List[ProgressSink] = [LoggingProgressSink()]
    if config.notifications.enabled:
        sinks.append(NtfyProgressSink(config.notifications))
    return CompositeProgressSink(sinks)


async def run(config: AppConfig, allocations: List[TargetAllocation], preview: bool = False) -> int:
    """Run one rebalance (or preview) and return the process exit code"""
    async with T212Client(config=config) as gateway:
        orchestrator = RebalanceOrchestrator(
            gateway=gateway,
            resolver=AlgoliaTickerResolver(config=config),
            context_provider=EnvAccountContextProvider(),
            progress_sink=build_progress_sink(config),
            config=config
        )

        if preview:
            result = await orchestrator.calculate_rebalance(allocations)
            logger.info(
                f"Preview: {len(result.proposed_sells)} sells, {len(result.proposed_buys)} buys, "
                f"{len(result.skipped)} skipped"
            )
            return 0

        result = await orchestrator.rebalance(allocations)
        if not result.success:
            logger.error(f"Rebalance failed: {result.error}")
            return 1
        if result.failed_orders:
            logger.warning(f"{len(result.failed_orders)} order(s) failed; see log for details")
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_root_logger()

    try:
        config = resolve_config(args.config)
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        return 1

    configure_root_logger(config.logging)

    try:
        allocations = load_allocations(args.allocations)
    except (OSError, ValueError) as e:
        logger.error(f"Error parsing allocations: {e}")
        return 1

    try:
        return asyncio.run(run(config, allocations, preview=args.preview))
    except KeyboardInterrupt:
        logger.warning("Interrupted; orders already placed are not rolled back")
        return 130
    except Exception as e:
        logger.error(f"Unexpected failure: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
