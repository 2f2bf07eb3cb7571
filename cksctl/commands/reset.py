"""
Cluster reset command.

Tears the cluster down with ``kubeadm reset`` and initializes a fresh one,
keeping the Kubernetes packages, containerd and the CLI tools in place.
Use it between practice scenarios.
"""
import logging

import typer

from cksctl.errors import ProvisionError
from cksctl.modules import reset_cluster, summary
from .common import cli_state, fail, open_node

logger = logging.getLogger(__name__)

CONFIRM_MESSAGE = "This will delete all workloads and re-initialize the cluster. Are you sure?"


def reset(
    typer_ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log what would change without touching the host"),
):
    """Reset the cluster to a fresh state, keeping binaries and tools."""
    state = cli_state(typer_ctx)
    try:
        node = open_node(state, yes=yes, dry_run=dry_run)
        logger.warning("⚠️  This will reset your Kubernetes cluster to a fresh state.")
        logger.warning("All pods, deployments, services and custom configurations will be deleted.")
        if not node.gate.confirm(CONFIRM_MESSAGE):
            logger.info("Aborted by user")
            return

        report = reset_cluster(node)
        summary.print_reset_summary(node, report)
    except ProvisionError as e:
        fail(e, state.debug)
