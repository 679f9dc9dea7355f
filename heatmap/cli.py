"""
Heatmap - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line runner for the acquisition pipeline.

- Loads configuration from .env, environment, YAML and flags
- Runs a single refresh cycle or polls until interrupted
- Logs (or prints as JSON) every published snapshot

============================================================
USAGE
============================================================
heatmap --mock --once
heatmap --api-base-url https://scores.example.com --assets USOIL,EUR --interval-ms 60000
python -m heatmap.cli --config heatmap.yaml --json

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import HeatmapConfig, normalize_assets
from .controller import PollingController
from .models import PollPhase, PollState


logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Configure root logging for the CLI.

    Args:
        level: Log level name
        log_format: "text" or "json"

    Returns:
        The CLI logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("heatmap")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="heatmap",
        description="Poll asset scoring data and publish normalized heatmap snapshots",
    )

    source_group = parser.add_argument_group("Data Source")
    source_group.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="YAML config file (environment variables are used otherwise)",
    )
    source_group.add_argument(
        "--api-base-url",
        type=str,
        default=None,
        help="Provider base URL",
    )
    source_group.add_argument(
        "--mock",
        action="store_true",
        help="Use in-memory fixture data instead of the network client",
    )
    source_group.add_argument(
        "--assets", "-a",
        type=str,
        default=None,
        help="Comma-separated asset symbols (e.g. USOIL,USD,EUR)",
    )

    polling_group = parser.add_argument_group("Polling")
    polling_group.add_argument(
        "--interval-ms",
        type=int,
        default=None,
        help="Refresh interval in milliseconds (0 = single cycle)",
    )
    polling_group.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Retries per asset after the first failed attempt",
    )
    polling_group.add_argument(
        "--once",
        action="store_true",
        help="Run one refresh cycle and exit",
    )

    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "--json",
        action="store_true",
        help="Print each snapshot as a JSON line",
    )
    output_group.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    output_group.add_argument(
        "--log-format",
        type=str,
        default="text",
        choices=["text", "json"],
        help="Log format (default: text)",
    )

    return parser


def build_config(args: argparse.Namespace) -> HeatmapConfig:
    """Merge file/environment configuration with CLI flags."""
    if args.config:
        config = HeatmapConfig.from_yaml(args.config)
    else:
        config = HeatmapConfig.from_env()

    overrides = config.to_dict()
    if args.api_base_url:
        overrides["api_base_url"] = args.api_base_url
    if args.mock:
        overrides["use_mock"] = True
    if args.assets:
        overrides["assets"] = normalize_assets(args.assets)
    if args.interval_ms is not None:
        overrides["refresh_interval_ms"] = args.interval_ms
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    if args.once:
        overrides["refresh_interval_ms"] = 0

    return HeatmapConfig(**overrides)


def _report(state: PollState, as_json: bool) -> None:
    if state.phase not in (PollPhase.READY, PollPhase.ERRORED):
        return

    if as_json:
        print(json.dumps(state.to_dict()), flush=True)
        return

    if state.error:
        logger.error(f"Refresh failed: {state.error}")
        return

    for item in state.data:
        logger.info(
            f"{item.asset:<8} {item.bias.value:<13} score={item.score} "
            f"sentiment={dict(item.sentiment)} technical={dict(item.technical)} economic={dict(item.economic)}"
        )
    if not state.data:
        logger.warning("No assets available in this cycle")


async def run(config: HeatmapConfig, as_json: bool = False) -> int:
    """Run the controller; returns a process exit code."""
    controller = PollingController.from_config(config)
    controller.subscribe(lambda state: _report(state, as_json))

    try:
        if config.refresh_enabled:
            await controller.start()
            # Poll until interrupted
            await asyncio.Event().wait()
            return 0

        state = await controller.refresh_now()
        return 1 if state.phase == PollPhase.ERRORED else 0
    finally:
        await controller.stop()
        await controller.client.close()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.log_format)

    try:
        config = build_config(args)
    except ValueError as e:
        parser.error(str(e))

    logger.info(f"Configuration: {config.to_dict()}")

    try:
        return asyncio.run(run(config, as_json=args.json))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
