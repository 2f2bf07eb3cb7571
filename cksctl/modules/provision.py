"""Provisioning sequence for a fresh single-node CKS practice cluster.

The order is fixed: every step relies on the ones before it (the CNI apply
needs a reachable API server, the kubelet drop-in needs the kubelet
package, and so on).
"""
import logging
from typing import List

from cksctl.modules import addons, control_plane, system, tools
from cksctl.modules.node import NodeContext, StepDefinition, StepExecutor, RunReport

logger = logging.getLogger(__name__)


def build_create_steps(ctx: NodeContext) -> List[StepDefinition]:
    """Ordered setup steps. Every step is safe to re-run."""
    prober = ctx.prober
    skip_init = lambda: ctx.session.skip_cluster_init

    return [
        StepDefinition(
            name='system-prep',
            description="Preparing system",
            action=lambda: system.prepare_system(ctx),
        ),
        StepDefinition(
            name='containerd-install',
            description="Installing containerd",
            precondition=lambda: prober.binary_present('containerd'),
            action=lambda: system.install_containerd(ctx),
        ),
        StepDefinition(
            name='containerd-configure',
            description="Configuring containerd",
            action=lambda: system.configure_containerd(ctx),
        ),
        StepDefinition(
            name='kubernetes-packages',
            description=f"Installing Kubernetes components (v{ctx.versions.kubernetes})",
            precondition=lambda: prober.binary_present('kubeadm'),
            action=lambda: system.install_kubernetes_packages(ctx),
        ),
        StepDefinition(
            name='kubelet-tuning',
            description="Configuring kubelet resource reservations",
            action=lambda: system.tune_kubelet(ctx),
        ),
        StepDefinition(
            name='cluster-init',
            description="Initializing Kubernetes cluster",
            precondition=skip_init,
            action=lambda: control_plane.kubeadm_init(ctx),
        ),
        StepDefinition(
            name='kubeconfig',
            description="Configuring kubectl",
            action=lambda: control_plane.configure_kubeconfig(ctx),
        ),
        StepDefinition(
            name='untaint',
            description="Untainting control-plane node",
            precondition=skip_init,
            action=lambda: control_plane.untaint_control_plane(ctx),
        ),
        StepDefinition(
            name='cni',
            description=f"Installing Calico CNI ({ctx.versions.calico})",
            precondition=lambda: addons.calico_installed(ctx),
            action=lambda: addons.install_calico(ctx),
        ),
        StepDefinition(
            name='metrics-server',
            description="Installing metrics-server",
            precondition=lambda: addons.metrics_server_installed(ctx),
            action=lambda: addons.install_metrics_server(ctx),
        ),
        StepDefinition(
            name='crictl',
            description=f"Installing crictl ({ctx.versions.crictl})",
            precondition=lambda: prober.binary_present('crictl'),
            action=lambda: tools.install_crictl(ctx),
        ),
        StepDefinition(
            name='etcdctl',
            description="Installing etcdctl",
            precondition=lambda: prober.binary_present('etcdctl'),
            action=lambda: tools.install_etcdctl(ctx),
        ),
        StepDefinition(
            name='kubesec',
            description="Installing kubesec",
            precondition=lambda: prober.binary_present('kubesec'),
            action=lambda: tools.install_kubesec(ctx),
        ),
        StepDefinition(
            name='kube-bench',
            description=f"Installing kube-bench (v{ctx.versions.kube_bench})",
            precondition=lambda: prober.binary_present('kube-bench'),
            action=lambda: tools.install_kube_bench(ctx),
        ),
        StepDefinition(
            name='krew',
            description="Installing krew and kubectl plugins",
            precondition=lambda: tools.krew_installed(ctx),
            action=lambda: tools.install_krew(ctx),
        ),
        StepDefinition(
            name='shell',
            description="Configuring kubectl completion and aliases",
            action=lambda: tools.configure_shell(ctx),
        ),
        StepDefinition(
            name='verify',
            description="Verifying cluster status",
            action=lambda: control_plane.wait_for_system_pods(ctx),
        ),
    ]


def create_cluster(ctx: NodeContext) -> RunReport:
    """Run the full setup sequence; a failing step aborts with StepFailedError."""
    logger.info(f"Starting CKS cluster setup for user: {ctx.session.original_user}")
    logger.info(f"Kubernetes Version: {ctx.versions.kubernetes}")
    return StepExecutor("CKS cluster setup", build_create_steps(ctx)).run()
