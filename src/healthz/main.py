#!/usr/bin/env python3
"""
healthz Main Entry Point

Provides the ``healthz`` command line interface with ``single`` and ``loop``
subcommands. This module is the only place that turns probe and loop results
into process exit codes.
"""

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import HealthzConfig, load_config
from .durations import format_duration, parse_duration
from .errors import ConfigurationError
from .loop import BackoffPolicy, StopReason, run_loop
from .probe import ProbeResult, probe
from .utils.json_logger import configure_logging

EXIT_UNHEALTHY = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130

app = typer.Typer(
    name="healthz",
    help="Test if a TCP/HTTP(S) endpoint is healthy",
    rich_markup_mode="rich",
    no_args_is_help=True,
)
console = Console(soft_wrap=True)
logger = logging.getLogger(__name__)

ENDPOINT_HELP = "TCP/HTTP(S) Endpoint URL, for example tcp://example:4000"
TIMEOUT_HELP = "Connection timeout, e.g. 5s or 500ms (default: 5s)"


def _version_callback(value: bool):
    if value:
        console.print(f"healthz {__version__}")
        raise typer.Exit()


def _usage_error(message: str) -> None:
    console.print(f"[red]Error: {escape(message)}[/red]")
    raise typer.Exit(code=EXIT_USAGE)


def _duration(
    value: Optional[str], default: Optional[float], option: str
) -> Optional[float]:
    """Parse a duration option, falling back to the configured default."""
    if value is None:
        return default
    try:
        return parse_duration(value)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint=option)


def _timeout(value: Optional[str], cfg: HealthzConfig) -> float:
    timeout_s = _duration(value, cfg.timeout, "--timeout")
    if timeout_s <= 0:
        raise typer.BadParameter("timeout must be positive", param_hint="--timeout")
    return timeout_s


def _config(ctx: typer.Context) -> HealthzConfig:
    if isinstance(ctx.obj, HealthzConfig):
        return ctx.obj
    try:
        return load_config()
    except ConfigurationError as e:
        _usage_error(str(e))


def _print_failure(result: ProbeResult) -> None:
    console.print(escape(result.message), style="red")


class Interrupted(Exception):
    """Raised from the SIGINT/SIGTERM handler installed around the loop."""


@contextmanager
def _interrupt_on_signals() -> Iterator[None]:
    """Turn SIGINT/SIGTERM into :class:`Interrupted` for the duration of the block.

    The handler only raises; it must not take locks the interrupted frame may hold.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, _frame):
        raise Interrupted(signal.Signals(signum).name)

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, prev in previous.items():
            signal.signal(sig, prev)


@app.callback()
def cli(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level for stderr output (default: WARNING)"
    ),
    log_format: Optional[str] = typer.Option(
        None, "--log-format", help="Log format: text or json (default: text)"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
):
    """Test if an endpoint is healthy."""
    try:
        cfg = HealthzConfig.from_env()
    except ConfigurationError as e:
        _usage_error(str(e))

    if log_level is not None:
        cfg.log_level = log_level.upper()
    if log_format is not None:
        cfg.log_format = log_format.lower()

    errors = cfg.validate()
    if errors:
        _usage_error("; ".join(errors))

    configure_logging(cfg.log_level, cfg.log_format)
    logger.debug("Configuration: %s", cfg.to_dict())
    ctx.obj = cfg


@app.command("single")
def single(
    ctx: typer.Context,
    endpoint: str = typer.Option(..., "--endpoint", "-e", help=ENDPOINT_HELP),
    timeout: Optional[str] = typer.Option(None, "--timeout", "-t", help=TIMEOUT_HELP),
):
    """Test once if an endpoint is healthy."""
    cfg = _config(ctx)
    timeout_s = _timeout(timeout, cfg)

    result = probe(endpoint, timeout_s)
    if not result.ok:
        _print_failure(result)
        raise typer.Exit(code=EXIT_UNHEALTHY)
    console.print("OK", style="green")


@app.command("loop")
def loop(
    ctx: typer.Context,
    endpoint: str = typer.Option(..., "--endpoint", "-e", help=ENDPOINT_HELP),
    timeout: Optional[str] = typer.Option(None, "--timeout", "-t", help=TIMEOUT_HELP),
    backoff: Optional[float] = typer.Option(
        None,
        "--backoff",
        "-b",
        min=1.0,
        help="Rate at which to back off from retries, must be >= 1 (default: 1.0)",
    ),
    min_delay: Optional[str] = typer.Option(
        None, "--min", "-m", help="Minimum time to wait before retrying (default: 1s)"
    ),
    max_delay: Optional[str] = typer.Option(
        None, "--max", "-x", help="Maximum time to wait before retrying (default: 120s)"
    ),
    max_attempts: Optional[int] = typer.Option(
        None, "--max-attempts", min=1, help="Give up after this many failed attempts"
    ),
    deadline: Optional[str] = typer.Option(
        None, "--deadline", help="Give up once this much time has passed, e.g. 5m"
    ),
    fail_fast: bool = typer.Option(
        False,
        "--fail-fast",
        help="Give up immediately on a malformed endpoint or unsupported scheme",
    ),
):
    """Continuously test an endpoint until it is healthy."""
    cfg = _config(ctx)
    timeout_s = _timeout(timeout, cfg)
    deadline_s = _duration(deadline, None, "--deadline")

    try:
        policy = BackoffPolicy(
            min_delay=_duration(min_delay, cfg.min_delay, "--min"),
            max_delay=_duration(max_delay, cfg.max_delay, "--max"),
            backoff=cfg.backoff if backoff is None else backoff,
        )
    except ConfigurationError as e:
        _usage_error(str(e))

    logger.debug(
        "Looping on %s: timeout=%s min=%s max=%s backoff=%g",
        endpoint,
        format_duration(timeout_s),
        format_duration(policy.min_delay),
        format_duration(policy.max_delay),
        policy.backoff,
    )

    try:
        with _interrupt_on_signals():
            result = run_loop(
                endpoint,
                timeout_s,
                policy,
                max_attempts=max_attempts,
                deadline=deadline_s,
                fail_fast=fail_fast,
                on_failure=_print_failure,
            )
    except Interrupted as e:
        logger.warning("Received %s, stopping", e)
        raise typer.Exit(code=EXIT_CANCELLED)

    if result.ok:
        console.print("OK", style="green")
        return
    if result.reason is StopReason.CANCELLED:
        raise typer.Exit(code=EXIT_CANCELLED)
    console.print(
        f"[red]Gave up after {result.attempts} attempt(s) "
        f"({result.reason.value}, {format_duration(result.elapsed)})[/red]"
    )
    raise typer.Exit(code=EXIT_UNHEALTHY)


def main():
    """Main entry point for the healthz CLI."""
    app()


if __name__ == "__main__":
    main()
