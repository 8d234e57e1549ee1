"""
intentest command line entry point.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from intentest import __version__
from intentest.browser.github import GitHubAuthenticator
from intentest.config.loader import load_config
from intentest.error_handling import ConfigError, ToolError
from intentest.monitoring.logger import get_logger, setup_logging
from intentest.monitoring.reporter import TestReporter
from intentest.orchestration.runner import TestRunner

console = Console()
logger = get_logger("intentest.main")


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="intentest",
        description=f"intentest - AI-driven browser tests v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run every test matched by the configured pattern
  intentest

  # Run one file
  intentest tests/login.test.py

  # Run the test declared around line 12
  intentest tests/login.test.py:12

  # Ignore and then clear cached runs
  intentest --no-cache --purge-cache

  # Print the current GitHub 2FA code
  intentest --github-code --secret <TOTP_SECRET>
        """,
    )

    parser.add_argument(
        "pattern",
        nargs="?",
        help="Test file glob, optionally suffixed with :<line>",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        default=None,
        help="Run browser in headless mode",
    )
    parser.add_argument(
        "--base-url",
        help="Application URL opened before each test file",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Always run tests through the model, ignoring cached runs",
    )
    parser.add_argument(
        "--purge-cache",
        action="store_true",
        help="Delete the run cache before running",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        help="Path to the config file (default: discovered in cwd)",
    )
    parser.add_argument(
        "--github-code",
        action="store_true",
        help="Print the current GitHub two-factor code and exit",
    )
    parser.add_argument(
        "--secret",
        help="GitHub TOTP secret for --github-code (default: GITHUB_TOTP_SECRET)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    return parser


def parse_pattern(value: str) -> Tuple[str, Optional[int]]:
    """Split ``path:line`` into the pattern and the line number."""
    pattern, separator, line = value.rpartition(":")
    if separator and pattern and line.isdigit():
        return pattern, int(line)
    return value, None


def print_github_code(secret: Optional[str], cwd: Path) -> int:
    """Print a GitHub TOTP code from ``secret`` or the environment."""
    env_file = cwd / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    try:
        totp = GitHubAuthenticator(secret).generate_totp_code()
    except ToolError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        return 1

    console.print("[bold cyan]GitHub 2FA Code[/bold cyan]")
    console.print(f"Code: [bold]{totp.code}[/bold]")
    console.print(f"Expires in: [bold]{totp.time_remaining}s[/bold]")
    console.print(f"[dim]Using secret from: {'--secret' if secret else 'environment'}[/dim]")
    return 0


async def async_main(args: Optional[list] = None) -> int:
    """Async main entry point."""
    parsed_args = create_parser().parse_args(args)
    cwd = Path.cwd()

    if parsed_args.github_code:
        return print_github_code(parsed_args.secret, cwd)

    settings = load_config(
        config_dir=cwd,
        config_path=parsed_args.config,
        overrides={
            "headless": parsed_args.headless,
            "base_url": parsed_args.base_url,
            "no_cache": parsed_args.no_cache,
        },
    )

    setup_logging(
        log_level="DEBUG" if parsed_args.debug else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
    )

    pattern, line_number = (
        parse_pattern(parsed_args.pattern)
        if parsed_args.pattern
        else (settings.test_pattern, None)
    )
    logger.debug(
        "Starting run",
        extra={"pattern": pattern, "line": line_number, "provider": settings.ai_provider},
    )

    runner = TestRunner(
        settings,
        cwd=cwd,
        reporter=TestReporter(console=console, model=settings.ai_model),
        force_purge_cache=parsed_args.purge_cache,
    )
    passed = await runner.execute(pattern, line_number)
    return 0 if passed else 1


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for intentest.

    Args:
        args: Command line arguments

    Returns:
        Exit code (0 when every test passed, 1 otherwise)
    """
    try:
        return asyncio.run(async_main(args))
    except ConfigError as e:
        console.print(f"[red]Configuration error: {escape(e.message)}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Test execution interrupted by user[/yellow]")
        return 130


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
