"""Command-line interface for ZenoGuard Agent."""

import asyncio
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from . import __version__
from . import daemon
from .config import AgentConfig, DEFAULT_LOG_FILE, check_permissions, default_config_path, validate_credentials
from .context import AgentContext
from .errors import AgentAuthError, ConfigError, SubmissionError
from .logger import setup_logging
from .reporter import Reporter

app = typer.Typer(
    name="zenoguard-agent",
    help="Host telemetry agent reporting to a ZenoGuard server",
    add_completion=False,
)

console = Console()

NOT_CONFIGURED_HELP = """[yellow]ZenoGuard Agent is not configured.[/yellow]

Configure using:
  zenoguard-agent configure --server <URL> --token <TOKEN>

Or set environment variables:
  ZENOGUARD_SERVER_URL=<URL>
  ZENOGUARD_TOKEN=<TOKEN>
  ZENOGUARD_HOSTNAME=<hostname>
  ZENOGUARD_REPORT_INTERVAL=<seconds>"""


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


def load_config(config_path: Optional[Path], server: Optional[str], token: Optional[str]) -> AgentConfig:
    """Stored config, environment, then command-line overrides."""
    config = AgentConfig.load(str(config_path) if config_path else None)
    if server:
        config.server_url = server
    if token:
        config.token = token
    return config


async def run_reporter(context: AgentContext) -> None:
    """Run the reporter until a stop signal arrives."""
    reporter = Reporter(context)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT, signal.SIGHUP):
        loop.add_signal_handler(sig, reporter.stop)

    try:
        await reporter.run()
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT, signal.SIGHUP):
            loop.remove_signal_handler(sig)
        await reporter.close()


@app.command()
def run(
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Server URL (e.g. https://monitor.example.com)"),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Authentication token"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    daemonize: bool = typer.Option(False, "--daemon", "-d", help="Run as daemon"),
    log_file: Optional[str] = typer.Option(None, "--log", help=f"Log file path (default: {DEFAULT_LOG_FILE})"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level: debug, info, warn, error"),
):
    """Start collecting and reporting."""
    try:
        config = load_config(config_path, server, token)
    except ConfigError as e:
        console.print(f"[red]Failed to load configuration: {e}[/red]")
        raise typer.Exit(1)
    if log_file:
        config.log_file = log_file
    if log_level:
        config.log_level = log_level

    logger = setup_logging(config.log_level, config.log_file)

    if not config.server_url and not config.token:
        console.print(NOT_CONFIGURED_HELP)
        raise typer.Exit(1)

    try:
        config.validate()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    warning = check_permissions(str(config_path) if config_path else None)
    if warning:
        logger.warning(f"Config security issue: {warning}")

    # First run with credentials on the command line: remember them
    stored = config_path or default_config_path()
    if not Path(stored).exists() and server and token:
        saved = config.to_yaml(str(stored))
        logger.info(f"Initial configuration saved to {saved}")

    other = daemon.is_other_instance_running()
    if other:
        logger.info(f"Agent is already running (PID: {other})")
        raise typer.Exit(0)

    if daemonize:
        logger.info("Daemonizing process...")
        daemon.daemonize()

    pid_path = daemon.write_pid_file()
    context = AgentContext(config=config, logger=logger)

    logger.info(f"Starting ZenoGuard Agent v{__version__}")
    logger.info(f"Server: {config.server_url}")

    exit_code = 0
    try:
        run_async(run_reporter(context))
    except AgentAuthError as e:
        logger.critical(str(e))
        exit_code = 1
    finally:
        daemon.remove_pid_file(pid_path)

    if exit_code:
        raise typer.Exit(exit_code)


@app.command()
def configure(
    server: str = typer.Option(..., "--server", "-s", help="Server URL"),
    token: str = typer.Option(..., "--token", "-t", help="Authentication token"),
    interval: int = typer.Option(60, "--interval", "-i", help="Report interval in seconds"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Validate and store server URL and token."""
    try:
        validate_credentials(server, token)
    except ConfigError as e:
        console.print(f"[red]Configuration failed: {e}[/red]")
        raise typer.Exit(1)

    config = AgentConfig(server_url=server, token=token, report_interval=interval)
    saved = config.to_yaml(str(config_path) if config_path else None)
    console.print(f"[green]Configuration saved to {saved}[/green]")


@app.command()
def stop():
    """Stop the running daemon."""
    try:
        pid = daemon.stop()
    except RuntimeError as e:
        console.print(f"[red]Failed to stop daemon: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Sent SIGTERM to agent (PID: {pid})[/green]")


@app.command()
def status():
    """Show whether the daemon is running."""
    running, pid = daemon.status()
    if running:
        console.print(f"[green]ZenoGuard Agent is running (PID: {pid})[/green]")
        return
    console.print("[yellow]ZenoGuard Agent is not running[/yellow]")
    raise typer.Exit(1)


@app.command()
def version():
    """Show version information."""
    console.print(f"ZenoGuard Agent v{__version__}")


@app.command("test-connection")
def test_connection(
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Server URL"),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Authentication token"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Check that the server is reachable."""
    try:
        config = load_config(config_path, server, token)
        config.validate()
    except ConfigError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1)

    context = AgentContext(config=config)

    async def _probe() -> int:
        reporter = Reporter(context, collectors=[])
        try:
            return await reporter.test_connection()
        finally:
            await reporter.close()

    try:
        code = run_async(_probe())
    except SubmissionError as e:
        console.print(f"[red]Connection failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(Panel(
        f"[cyan]Server:[/cyan] {config.server_url}\n[cyan]Status:[/cyan] {code}",
        title="Server reachable",
    ))


def main():
    app()


if __name__ == "__main__":
    main()
