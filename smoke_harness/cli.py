"""Command-line interface for the smoke harness."""

import json
from pathlib import Path

import click

from smoke_harness.dispatch.concurrent import run_batch
from smoke_harness.dispatch.config import ConfigLoader
from smoke_harness.dispatch.exceptions import ConfigurationError
from smoke_harness.dispatch.logging import configure_logging
from smoke_harness.dispatch.models import (
    DEFAULT_TARGET,
    FRAMING_MODES,
    DispatchSettings,
    HarnessProfile,
)
from smoke_harness.dispatch.payloads import build_requests, collect_payloads

EXIT_CONFIG_ERROR = 2


@click.command()
@click.option("--target", help=f"Target address as host:port (default: {DEFAULT_TARGET})")
@click.option(
    "--count",
    type=click.IntRange(min=0),
    help="Number of concurrent requests; payloads are cycled to fill it",
)
@click.option(
    "--payload-hex", multiple=True, help="Request payload as hex (repeatable)"
)
@click.option(
    "--payload-file",
    multiple=True,
    type=click.Path(dir_okay=False),
    help="Request payload file, raw bytes or .hex text (repeatable)",
)
@click.option(
    "--timeout",
    type=float,
    help="Seconds allowed for each phase of an attempt: connect, write and read (default: 5)",
)
@click.option(
    "--batch-timeout", type=float, help="Cancel attempts still pending after this many seconds"
)
@click.option(
    "--framing",
    type=click.Choice(FRAMING_MODES),
    help="Where a response ends: at peer close (eof) or after one size-prefixed frame",
)
@click.option("--max-response-bytes", type=int, help="Upper bound on bytes read per response")
@click.option(
    "--half-close/--no-half-close",
    default=None,
    help="Shut down the write side after sending (overrides the profile)",
)
@click.option(
    "--connect-retries", type=click.IntRange(min=0), help="Retries for refused connections"
)
@click.option("--profile", help="Profile to load (filename without .yaml)")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    default="./config",
    help="Directory holding profiles (default: ./config)",
)
@click.option("--list-profiles", is_flag=True, help="List all available profiles")
@click.option(
    "--output", type=click.Path(dir_okay=False), help="Write the batch outcome as JSON"
)
@click.option("--verbose", is_flag=True, help="Enable verbose logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this file")
@click.pass_context
def main(
    ctx,
    target,
    count,
    payload_hex,
    payload_file,
    timeout,
    batch_timeout,
    framing,
    max_response_bytes,
    half_close,
    connect_retries,
    profile,
    config_dir,
    list_profiles,
    output,
    verbose,
    json_logs,
    log_file,
):
    """Concurrent protocol smoke test.

    Opens one connection per request against TARGET, sends every payload
    concurrently, waits for all of them and prints one line per attempt.
    Exits 0 when every attempt succeeded, 1 when any failed and 2 on
    configuration errors.
    """
    configure_logging(
        debug_mode=verbose,
        log_level=None if verbose else "WARNING",
        log_file=log_file,
        structured=json_logs,
    )

    try:
        loader = ConfigLoader(Path(config_dir))

        if list_profiles:
            click.echo("Available profiles:")
            for name in loader.list_available_profiles():
                click.echo(f"  {name}")
            return

        loaded = loader.load_profile(profile) if profile else HarnessProfile(name="cli")

        overrides = {
            "timeout": timeout,
            "batch_timeout": batch_timeout,
            "framing": framing,
            "max_response_bytes": max_response_bytes,
            "connect_retries": connect_retries,
            "half_close": half_close,
        }
        settings_values = {**loaded.settings}
        settings_values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            settings = DispatchSettings(**settings_values)
        except TypeError as e:
            raise ConfigurationError(f"Invalid settings: {e}")

        request_count = count if count is not None else loaded.count
        payloads = collect_payloads(
            hex_literals=payload_hex,
            files=payload_file,
            sources=loaded.payloads,
        )
        if not payloads and request_count != 0:
            raise ConfigurationError(
                "No request payloads given; use --payload-hex, --payload-file or a profile",
                field="payloads",
            )
        requests = build_requests(payloads, request_count)

        outcome = run_batch(target or loaded.target or DEFAULT_TARGET, requests, settings)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        ctx.exit(EXIT_CONFIG_ERROR)

    for line in outcome.summary_lines():
        click.echo(line)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(outcome.to_dict(), f, indent=2)

    ctx.exit(outcome.exit_code)


if __name__ == "__main__":
    main()
