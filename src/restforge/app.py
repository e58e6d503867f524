"""Typer application and CLI entry point for restforge.

The ``restforge`` command drives a builder created from an API definition
file (see :mod:`restforge.config`)::

    restforge --definition wechat.yaml endpoints
    restforge -d wechat.yaml call getUserInfo -p openid=o6_bmjrPTlm6

:func:`main` is the console-script entry point declared in
``pyproject.toml``. :class:`~restforge.exceptions.RestforgeError` exits
with the error's ``exit_code``; anything else writes a crash log under the
data directory.
"""

from __future__ import annotations

import asyncio
import json
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from restforge import __version__
from restforge.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE

app = typer.Typer(
    name="restforge",
    help="Call REST endpoints declared in an API definition file.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"restforge {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit.",
    ),
    definition: Optional[str] = typer.Option(
        None, "--definition", "-d", help="API definition file or name."
    ),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Override the base URL."),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show retry and auth traces."),
    output_file: Optional[str] = typer.Option(None, "-o", "--output", help="Write the response to a file."),
) -> None:
    """Install the global output manager and stash shared options in ``ctx.obj``."""
    from restforge.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(
            format=fmt, no_color=no_color, quiet=quiet, verbose=verbose, output_file=output_file,
        )
    )
    ctx.ensure_object(dict)
    ctx.obj["definition"] = definition
    ctx.obj["base_url"] = base_url


def parse_pairs(pairs: list[str], option: str) -> dict[str, Any]:
    """Parse ``key=value`` strings; values that are valid JSON are decoded."""
    result: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint=option)
        try:
            result[key] = json.loads(value)
        except json.JSONDecodeError:
            result[key] = value
    return result


@app.command("endpoints")
def endpoints_command(ctx: typer.Context) -> None:
    """List the endpoints declared in the active definition."""
    from restforge.builder import parse_route
    from restforge.config import resolve_definition
    from restforge.output import print_table

    definition = resolve_definition(ctx.obj.get("definition"), ctx.obj.get("base_url"))
    rows = []
    for name, route in sorted(definition.routes.items()):
        method, path = parse_route(route)
        rows.append([name, method or definition.default_method.value, path])
    print_table(["Name", "Method", "Path"], rows, title=definition.base_url)


@app.command("call")
def call_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Endpoint name."),
    param: list[str] = typer.Option([], "--param", "-p", help="Call parameter as key=value."),
    extra: list[str] = typer.Option([], "--extra", "-x", help="Extra query parameter as key=value."),
    body: Optional[str] = typer.Option(None, "--body", help="JSON object merged over --param values."),
    response_format: Optional[str] = typer.Option(
        None, "--format", help="Force the decode format: json, text, blob, buffer."
    ),
    max_retries: Optional[int] = typer.Option(None, "--max-retries", help="Override the retry budget."),
) -> None:
    """Call endpoint NAME and print the decoded response."""
    from restforge.builder import SdkBuilder
    from restforge.config import resolve_definition
    from restforge.output import debug, format_response

    params = parse_pairs(param, "--param")
    if body:
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"Invalid JSON: {exc}", param_hint="--body") from exc
        if not isinstance(parsed, dict):
            raise typer.BadParameter("Body must be a JSON object", param_hint="--body")
        params.update(parsed)
    extra_params = parse_pairs(extra, "--extra")

    definition = resolve_definition(ctx.obj.get("definition"), ctx.obj.get("base_url"))

    async def _run() -> Any:
        async with SdkBuilder.from_definition(definition) as builder:
            debug(f"Calling {name} against {definition.base_url}")
            return await builder.invoke(
                name, params, extra_params, response_format=response_format, max_retries=max_retries,
            )

    format_response(asyncio.run(_run()))


def _setup_signal_handlers() -> None:
    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    from restforge.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text("".join(traceback.format_exception(exc)))
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``restforge`` console script.

    Click usage errors exit with code 2, restforge errors with their
    ``exit_code``, and anything else with a crash log and code 1.
    """
    from restforge.exceptions import RestforgeError
    from restforge.output import error

    _setup_signal_handlers()
    try:
        app(standalone_mode=False)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except RestforgeError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        import click

        if isinstance(exc, click.exceptions.Abort):
            sys.stderr.write("\nCancelled.\n")
            sys.exit(130)
        if isinstance(exc, click.ClickException):
            exc.show()
            sys.exit(exc.exit_code or EXIT_INVALID_USAGE)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
