import typer
import logging
import sys
from typing import Optional

from cksctl import __version__
from cksctl.commands import create, reset, destroy
from cksctl.commands.common import CliState
from cksctl.config import Settings, set_settings
from cksctl.errors import ConfigurationError
from cksctl.logging import setup_logging

app = typer.Typer(help="cksctl - single-node Kubernetes cluster for CKS practice.")

logger = logging.getLogger("cksctl")

# Add all commands
app.command("create")(create.create)
app.command("reset")(reset.reset)
app.command("destroy")(destroy.destroy)


def version_callback(value: bool):
    if value:
        typer.echo(f"cksctl {__version__}")
        raise typer.Exit()


# Global options callback
@app.callback(invoke_without_command=True)
def main(
    typer_ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to a YAML configuration file"),
    write_config: Optional[str] = typer.Option(None, "--write-config",
                                               help="Write the effective configuration to this file and exit"),
    version: bool = typer.Option(False, "--version", callback=version_callback, is_eager=True,
                                 help="Show the version and exit"),
):
    """cksctl - single-node Kubernetes cluster for CKS practice."""
    setup_logging("DEBUG" if debug else "INFO")
    try:
        settings = Settings.load(config)
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        raise typer.Exit(code=1)
    set_settings(settings)

    log = settings.logging
    setup_logging("DEBUG" if debug else log.level, log.file, log.max_size_mb, log.backup_count)
    if debug:
        logger.debug("Debug mode enabled")
    typer_ctx.obj = CliState(settings=settings, debug=debug)

    if write_config:
        settings.save(write_config)
        logger.info(f"✅ Configuration written to {write_config}")
        raise typer.Exit()
    if typer_ctx.invoked_subcommand is None:
        typer.echo(typer_ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
