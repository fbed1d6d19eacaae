"""Main entry point for the Print Notifier service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import asyncio
import os
import sys
import time
from pathlib import Path
from typing import Optional, Tuple

import uvicorn

from print_notifier.api import create_app
from print_notifier.config.environment import EnvironmentConfig
from print_notifier.config.exceptions import ConfigurationError
from print_notifier.config.loader import load_config
from print_notifier.config.models import AppConfig
from print_notifier.logging import get_logger
from print_notifier.logging.config import configure_logging
from print_notifier.runtime import NotifierRuntime
from print_notifier.scheduler.models import SweepResult

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI > environment > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override.upper()
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


async def run_manual_pass(runtime: NotifierRuntime) -> SweepResult:
    """Execute one sweep pass and release the database afterwards."""
    try:
        return await runtime.run_single_pass()
    finally:
        if runtime.database is not None:
            await runtime.database.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print Notifier - emails users when their print jobs are completed"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument(
        "--manual-run",
        action="store_true",
        help="Run a single reconciliation pass immediately and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    return parser


def main(argv=None) -> int:
    """
    Main entry point for the Print Notifier.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        environment = os.environ.get("ENVIRONMENT", "local")
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=environment,
        )

        logger.info(
            "Print Notifier starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "manual_run": args.manual_run,
            },
        )
        logger.info(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "sweep_interval_seconds": app_config.sweep_interval_seconds,
                "completion_status": app_config.completion_status,
                "listener_enabled": app_config.listener.enabled,
            },
        )

        runtime = NotifierRuntime(app_config, env_config)

        if args.manual_run:
            logger.info("Executing manual sweep", extra={"event": "service.manual_run.starting"})
            result = asyncio.run(run_manual_pass(runtime))

            logger.info(
                f"Manual sweep completed: {result.total} jobs, "
                f"{result.succeeded} succeeded, {result.failed} failed",
                extra={
                    "event": "service.manual_run.completed",
                    "duration_seconds": result.duration_seconds,
                    "skipped": result.skipped,
                    "had_errors": result.had_errors,
                    "total": result.total,
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                },
            )
            _log_stopping(start_time)
            return 1 if (result.skipped or result.had_errors) else 0

        port = env_config.port or app_config.server.port
        logger.info(
            f"Serving on {app_config.server.host}:{port}",
            extra={"event": "service.daemon_mode.started", "port": port},
        )
        uvicorn.run(
            create_app(runtime),
            host=app_config.server.host,
            port=port,
            log_config=None,
        )
        _log_stopping(start_time)
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return 1


def _log_stopping(start_time: float) -> None:
    logger.info(
        "Print Notifier stopped",
        extra={
            "event": "service.stopping",
            "uptime_seconds": round(time.time() - start_time, 2),
        },
    )


if __name__ == "__main__":
    sys.exit(main())
