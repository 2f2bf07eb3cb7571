"""Plumbing shared by the create, reset and destroy commands."""
import logging
import traceback
from dataclasses import dataclass
from typing import NoReturn

import typer

from cksctl.config import Settings, get_settings
from cksctl.modules.node import ConfirmationGate, NodeContext, build_context
from cksctl.modules.node.session import require_root, resolve_operator

logger = logging.getLogger(__name__)


@dataclass
class CliState:
    """Options from the top-level callback, handed to every command."""
    settings: Settings
    debug: bool = False


def cli_state(typer_ctx: typer.Context) -> CliState:
    state = typer_ctx.obj
    if not isinstance(state, CliState):
        # Invoked without the top-level callback (tests calling a command app directly)
        state = CliState(settings=get_settings())
        typer_ctx.obj = state
    return state


def open_node(state: CliState, yes: bool, dry_run: bool) -> NodeContext:
    """Root check, operator lookup and context wiring for one run.

    Raises:
        PrivilegeError: If not running as root
    """
    require_root()
    session = resolve_operator()
    logger.debug(f"Operator: {session.original_user} ({session.original_home})")
    if dry_run:
        logger.info("Dry run: commands that change the host are only logged")
    return build_context(state.settings, session, ConfirmationGate(assume_yes=yes), dry_run=dry_run)


def fail(error: Exception, debug: bool) -> NoReturn:
    """Log a fatal error the way every command reports it and exit 1."""
    if debug:
        logger.error(f"❌ {error}\n{traceback.format_exc()}")
    else:
        logger.error(f"❌ {error}")
    raise typer.Exit(code=1)
