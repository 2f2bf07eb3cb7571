"""
Cluster destroy command.

Removes every Kubernetes component installed by ``cksctl create`` and
restores swap, kernel module, sysctl, apt and shell configuration. Every
step is best-effort, so it can be run on a half-built or already clean host.
"""
import logging
from typing import Optional

import typer

from cksctl.errors import ProvisionError
from cksctl.modules import destroy_cluster, summary
from cksctl.modules.destroy import reboot as reboot_node
from cksctl.modules.node import TokenMode
from .common import cli_state, fail, open_node

logger = logging.getLogger(__name__)

CONFIRM_MESSAGE = "This will remove Kubernetes and all related components from this host. Are you sure?"
REBOOT_MESSAGE = "Reboot now?"


def destroy(
    typer_ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log what would change without touching the host"),
    reboot: Optional[bool] = typer.Option(
        None, "--reboot/--no-reboot",
        help="Reboot (or not) when done; asked interactively when omitted",
    ),
):
    """Completely remove the cluster and return the host to a vanilla state."""
    state = cli_state(typer_ctx)
    try:
        node = open_node(state, yes=yes, dry_run=dry_run)
        logger.warning("⚠️  This will completely remove Kubernetes and all related components.")
        logger.warning("The system will be returned to a vanilla Ubuntu state.")
        if not node.gate.confirm(CONFIRM_MESSAGE):
            logger.info("Aborted by user")
            return

        report = destroy_cluster(node)
        summary.print_destroy_summary(node, report)

        if reboot is None:
            # --yes never reboots on its own
            reboot = False if yes else node.gate.confirm(REBOOT_MESSAGE, TokenMode.YES_NO)
        if reboot:
            reboot_node(node)
        else:
            logger.info("Remember to reboot later: sudo reboot")
    except ProvisionError as e:
        fail(e, state.debug)
