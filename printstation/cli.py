"""Command-line interface for PrintStation agent."""

import logging
import sys
from pathlib import Path

import click

from printstation import __version__
from printstation.agent import PrintStationAgent
from printstation.api import ApiError, AuthenticationError
from printstation.config import DEFAULT_MAPPING_KEY, get_config
from printstation.history import JobHistory
from printstation.printing import get_printer
from printstation.store import DEFAULT_STORE_FILE, JsonStore


def setup_logging(level: str) -> None:
    """Set up logging configuration.

    Args:
        level: Log level string.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def _store(ctx: click.Context):
    return ctx.obj["store"]


def _agent(ctx: click.Context) -> PrintStationAgent:
    if "agent" not in ctx.obj:
        ctx.obj["agent"] = PrintStationAgent(_store(ctx))
    return ctx.obj["agent"]


def _require_config(ctx: click.Context):
    config = get_config(_store(ctx))
    if not config.is_configured():
        click.echo("Error: Agent not configured. Run 'printstation configure' first.")
        sys.exit(1)
    return config


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--store",
    "store_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Local state file (default: {DEFAULT_STORE_FILE})",
)
@click.pass_context
def main(ctx: click.Context, store_path: Path | None):
    """PrintStation - Local print agent.

    PrintStation polls your print server for pending jobs, renders them
    to PDF and prints them on the printer mapped to each document type.
    """
    ctx.ensure_object(dict)
    if "store" not in ctx.obj:
        ctx.obj["store"] = JsonStore(store_path)


@main.command()
@click.option("--url", "-u", prompt="API URL", help="Print API URL")
@click.option("--client", "-c", prompt="Client ID", help="Client identifier")
@click.option("--key", "-k", prompt="API Key", hide_input=True, help="API key for this client")
@click.pass_context
def configure(ctx: click.Context, url: str, client: str, key: str):
    """Validate credentials with the server and save them."""
    agent = _agent(ctx)

    try:
        config = agent.configure(client, url, key)
    except AuthenticationError as e:
        click.echo(f"\nInvalid credentials: {e}")
        sys.exit(1)
    except ApiError as e:
        click.echo(f"\nCould not validate credentials: {e}")
        sys.exit(1)

    click.echo("\nConfiguration saved.")
    if config.printer_mappings:
        click.echo("Printer mappings received from server:")
        for doc_type, printer_name in sorted(config.printer_mappings.items()):
            click.echo(f"  {doc_type} -> {printer_name}")
    click.echo("\nRun 'printstation test' to verify the connection.")
    click.echo("Run 'printstation start' to start the agent.")


@main.command()
@click.pass_context
def status(ctx: click.Context):
    """Show current configuration and status."""
    store = _store(ctx)
    config = get_config(store)

    click.echo("\n=== PrintStation Status ===\n")

    if not config.is_configured():
        click.echo("Status: NOT CONFIGURED")
        click.echo("\nRun 'printstation configure' to set up the agent.")
        return

    click.echo(f"API URL: {config.api_url}")
    click.echo(f"Client ID: {config.client_id}")
    click.echo(f"API Key: {'*' * 8}...{config.api_key[-4:] if len(config.api_key) > 4 else '****'}")
    click.echo(f"Token: {'set' if config.token else 'missing'}")

    click.echo("\n=== Printer Mappings ===\n")
    if config.printer_mappings:
        for doc_type, printer_name in sorted(config.printer_mappings.items()):
            click.echo(f"  {doc_type} -> {printer_name}")
    else:
        click.echo("  (none - system default printer is used)")

    stats = JobHistory(store).get_stats()
    click.echo("\n=== Jobs ===\n")
    for key in ("pending", "processing", "completed", "failed"):
        click.echo(f"  {key.capitalize()}: {stats.get(key, 0)}")


@main.command()
@click.pass_context
def test(ctx: click.Context):
    """Test connection to server and printer."""
    _require_config(ctx)
    setup_logging("INFO")

    click.echo("\n=== Testing PrintStation Connection ===\n")

    results = _agent(ctx).test_connection()

    # Server status
    server = results["server"]
    server_icon = "+" if server["status"] == "ok" else "x"
    click.echo(f"{server_icon} Server: {server['message']}")

    # Printer status
    printer = results["printer"]
    printer_icon = (
        "+" if printer["status"] == "ok" else ("!" if printer["status"] == "warning" else "x")
    )
    click.echo(f"{printer_icon} Printer: {printer['message']}")

    if printer.get("printers"):
        click.echo(f"  Available: {', '.join(printer['printers'])}")

    # Renderer status
    renderer = results["renderer"]
    renderer_icon = "+" if renderer["status"] == "ok" else "x"
    click.echo(f"{renderer_icon} Renderer: {renderer['message']}")

    click.echo("")

    if results["success"]:
        click.echo("All tests passed! You can now run 'printstation start'.")
    else:
        click.echo("Some tests failed. Please check the configuration.")
        sys.exit(1)


@main.command()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def start(ctx: click.Context, verbose: bool):
    """Start the PrintStation agent.

    The agent will poll the server for print jobs and print them
    automatically. Press Ctrl+C to stop.
    """
    config = _require_config(ctx)

    level = "DEBUG" if verbose else config.log_level
    setup_logging(level)

    click.echo("Starting PrintStation agent... (Ctrl+C to stop)")
    _agent(ctx).run()


@main.command()
def printers():
    """List available printers."""
    printer = get_printer()

    click.echo("\n=== Available Printers ===\n")

    if not printer.is_available:
        click.echo("Printing system not available. Is CUPS installed and running?")
        sys.exit(1)

    printers_list = printer.get_printers()
    if not printers_list:
        click.echo("No printers found.")
        return

    default = printer.get_default_printer()

    for p in printers_list:
        p_status = printer.get_printer_status(p["name"])
        marker = "* " if p["name"] == default else "  "
        click.echo(f"{marker}{p['name']} [{p_status}]")

    click.echo("\n(* = default printer)")


@main.command()
@click.option("--limit", "-n", default=20, show_default=True, help="Number of jobs to show")
@click.pass_context
def jobs(ctx: click.Context, limit: int):
    """List recent jobs from the local history."""
    history = JobHistory(_store(ctx)).get_jobs()

    if not history:
        click.echo("No jobs recorded yet.")
        return

    for job in history[:limit]:
        doc_type = job.get("type") or job.get("document_type") or "-"
        line = f"{job['id']:<12} {job.get('status', '-'):<11} {doc_type:<12}"
        if job.get("printer"):
            line += f" {job['printer']}"
        if job.get("error_message") and job.get("status") == "failed":
            line += f" ({job['error_message']})"
        click.echo(line)


@main.command()
@click.pass_context
def stats(ctx: click.Context):
    """Show job counts by status."""
    counts = JobHistory(_store(ctx)).get_stats()
    for key in ("pending", "processing", "completed", "failed"):
        click.echo(f"{key}: {counts.get(key, 0)}")


@main.command()
@click.argument("job_id")
@click.pass_context
def retry(ctx: click.Context, job_id: str):
    """Print a job from the local history again."""
    _require_config(ctx)
    setup_logging("INFO")

    agent = _agent(ctx)
    thread = agent.retry_job(job_id)
    if thread is None:
        click.echo(f"Job {job_id} not found in local history.")
        sys.exit(1)

    thread.join()
    job = agent.history.get_job(job_id) or {}
    click.echo(f"Job {job_id}: {job.get('status', 'unknown')}")
    if job.get("status") == "failed":
        sys.exit(1)


@main.command("map")
@click.argument("document_type")
@click.argument("printer_name")
@click.pass_context
def map_printer(ctx: click.Context, document_type: str, printer_name: str):
    """Send DOCUMENT_TYPE jobs to PRINTER_NAME.

    Use 'default' as the document type to set the fallback printer.
    """
    if not printer_name.strip():
        click.echo("Printer name cannot be empty. Use 'printstation unmap' to remove a mapping.")
        sys.exit(1)

    mappings = _agent(ctx).set_mapping(document_type, printer_name)
    click.echo(f"{document_type} -> {mappings[document_type]}")


@main.command("unmap")
@click.argument("document_type")
@click.pass_context
def unmap_printer(ctx: click.Context, document_type: str):
    """Remove the printer mapping for DOCUMENT_TYPE."""
    if not _agent(ctx).remove_mapping(document_type):
        click.echo(f"No mapping for {document_type}.")
        sys.exit(1)
    if document_type == DEFAULT_MAPPING_KEY:
        click.echo("Default mapping removed; the system default printer will be used.")
    else:
        click.echo(f"Mapping for {document_type} removed.")


@main.command()
@click.confirmation_option(prompt="Clear the saved configuration?")
@click.pass_context
def reset(ctx: click.Context):
    """Clear the saved configuration (factory reset)."""
    _agent(ctx).reset()
    click.echo("Configuration cleared.")


if __name__ == "__main__":
    main()
