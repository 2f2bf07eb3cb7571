"""
Cluster setup command.

Builds a single-node Kubernetes cluster for CKS practice: containerd,
kubeadm/kubelet/kubectl, Calico, metrics-server and the security tooling
(crictl, etcdctl, kubesec, kube-bench, krew plugins). Re-running it only
installs what is missing.
"""
import logging

import typer

from cksctl.errors import ProvisionError
from cksctl.modules import create_cluster, summary
from cksctl.modules.node.session import check_existing_cluster
from .common import cli_state, fail, open_node

logger = logging.getLogger(__name__)


def create(
    typer_ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Keep an existing cluster without asking"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log what would change without touching the host"),
):
    """Set up a single-node CKS practice cluster on this host."""
    state = cli_state(typer_ctx)
    try:
        node = open_node(state, yes=yes, dry_run=dry_run)
        check_existing_cluster(node.session, node.prober, node.gate, show=typer.echo)
        report = create_cluster(node)
        summary.print_create_summary(node, report)
    except ProvisionError as e:
        fail(e, state.debug)
