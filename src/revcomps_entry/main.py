"""
RevComps Free Entry
Command line entry point for the n8n-driven entry run.
"""

import asyncio
import sys
from typing import Optional

import click

from .core.entry_run import run_entry
from .core.result import RunResult, clear_result, write_result
from .integrations.n8n_reporter import relay_result
from .utils.config import DEFAULT_ENV_FILE, ConfigurationError, load_settings
from .utils.logger import setup_logging

logger = setup_logging()


@click.command()
@click.option('--env-file', '-e', default=DEFAULT_ENV_FILE,
              help='Path to the .env file with credentials')
@click.option('--test-mode', is_flag=True, default=False,
              help='Run every step except placing the order')
@click.option('--headed', is_flag=True, default=False,
              help='Show the browser window')
@click.option('--result-path', '-o', default=None,
              help='Where to write the run result JSON (overrides N8N_RESULT_PATH)')
@click.option('--verbose', '-v', is_flag=True,
              help='Enable verbose logging')
def main(env_file: str, test_mode: bool, headed: bool, result_path: Optional[str], verbose: bool) -> None:
    """
    RevComps Free Entry

    Logs into RevComps, adds every free competition not already held to the
    cart and places the order. The run result is printed as JSON on stdout.
    """
    if verbose:
        logger.setLevel("DEBUG")

    try:
        settings = load_settings(
            env_file,
            test_mode=True if test_mode else None,
            headless=False if headed else None,
            result_path=result_path,
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    clear_result(settings.result_path)

    failed = False
    try:
        result = asyncio.run(run_entry(settings))
        logger.info(f"Entry run finished with status {result.status.value} "
                    f"({result.added_count} added)")
    except Exception as e:
        failed = True
        message = str(e) or type(e).__name__
        logger.error(f"Entry run failed: {message}")
        if verbose:
            logger.exception("Full error traceback:")
        # failures before the run started (e.g. browser launch) leave no result behind
        if not settings.result_path.exists():
            write_result(RunResult.failed([f"Error: {message}"], [], message), settings.result_path)
    finally:
        relay_result(settings.result_path)

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
