"""Reset the cluster to a fresh state while keeping Kubernetes and the tools installed.

The teardown half is best-effort (soft). The rebuild half is fatal.
"""
import logging
from typing import List

from cksctl.modules import addons, cleanup, control_plane
from cksctl.modules.node import (
    FailurePolicy, NodeContext, RunReport, StepDefinition, StepExecutor, StepResult,
)

logger = logging.getLogger(__name__)

RESIDUAL_DIRS_CLEARED = ["/etc/cni/net.d", "/var/lib/cni", "/var/lib/kubelet"]
FALCO_LOCAL_RULES = "/etc/falco/falco_rules.local.yaml"
APPARMOR_PROFILES = "/etc/apparmor.d/k8s-*"
AUDIT_POLICY = "/etc/kubernetes/audit-policy.yaml"

SOFT = FailurePolicy.SOFT


def kubeadm_reset(ctx: NodeContext) -> StepResult:
    ctx.runner.run(['kubeadm', 'reset', '-f'], policy=SOFT)
    logger.info("kubeadm reset completed")
    return StepResult()


def remove_residual_files(ctx: NodeContext) -> StepResult:
    """Drop etcd data, CNI configs and kubelet state; kubeadm recreates them."""
    cleanup.remove_paths(ctx, ['/var/lib/etcd'])
    for directory in RESIDUAL_DIRS_CLEARED:
        ctx.fs.clear_dir(directory)
    cleanup.remove_paths(ctx, ctx.fs.glob('/etc/kubernetes/manifests/*.yaml.backup'))
    logger.info("Residual files cleaned")
    return StepResult()


def remove_security_configs(ctx: NodeContext) -> StepResult:
    """Remove practice artifacts: Falco local rules, k8s-* AppArmor profiles, audit policy."""
    if cleanup.remove_paths(ctx, [FALCO_LOCAL_RULES]):
        logger.info("  - Falco custom rules removed")

    for profile in ctx.fs.glob(APPARMOR_PROFILES):
        if not ctx.fs.path(profile).is_file():
            continue
        ctx.runner.run(['apparmor_parser', '-R', str(ctx.fs.path(profile))], policy=SOFT, quiet=True)
        cleanup.remove_paths(ctx, [profile])
        logger.info(f"  - AppArmor profile removed: {profile.rsplit('/', 1)[-1]}")

    if cleanup.remove_paths(ctx, [AUDIT_POLICY]):
        logger.info("  - Audit policy removed")

    ctx.runner.run(['systemctl', 'stop', 'falco'], policy=SOFT, quiet=True)
    logger.info("  - Falco stopped")
    return StepResult()


def restart_containerd(ctx: NodeContext) -> StepResult:
    ctx.runner.run(['systemctl', 'restart', 'containerd'])
    ctx.settle(ctx.timeouts.containerd_settle, "containerd")
    logger.info("containerd restarted")
    return StepResult()


def reinstall_calico(ctx: NodeContext) -> StepResult:
    result = addons.install_calico(ctx)
    if not result.warnings:
        logger.info("✅ Calico CNI re-installed successfully")
    return result


def build_reset_steps(ctx: NodeContext) -> List[StepDefinition]:
    """Ordered reset steps: tear down cluster state, then rebuild it."""
    return [
        StepDefinition(
            name='kubeadm-reset',
            description="Running kubeadm reset",
            action=lambda: kubeadm_reset(ctx),
            idempotent=False,
            policy=SOFT,
        ),
        StepDefinition(
            name='residual-files',
            description="Cleaning up residual files",
            action=lambda: remove_residual_files(ctx),
            idempotent=False,
            policy=SOFT,
        ),
        StepDefinition(
            name='security-configs',
            description="Removing custom security configurations",
            action=lambda: remove_security_configs(ctx),
            idempotent=False,
            policy=SOFT,
        ),
        StepDefinition(
            name='iptables',
            description="Flushing iptables rules",
            action=lambda: cleanup.flush_iptables(ctx),
            idempotent=False,
            policy=SOFT,
        ),
        StepDefinition(
            name='cni-interfaces',
            description="Removing CNI network interfaces",
            action=lambda: cleanup.remove_cni_interfaces(ctx),
            idempotent=False,
            policy=SOFT,
        ),
        StepDefinition(
            name='containerd-restart',
            description="Restarting containerd",
            action=lambda: restart_containerd(ctx),
        ),
        StepDefinition(
            name='cluster-init',
            description="Re-initializing Kubernetes cluster",
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
            action=lambda: control_plane.untaint_control_plane(ctx),
        ),
        StepDefinition(
            name='kube-proxy',
            description="Verifying kube-proxy",
            action=lambda: control_plane.wait_for_kube_proxy(ctx),
        ),
        StepDefinition(
            name='cni',
            description=f"Re-installing Calico CNI ({ctx.versions.calico})",
            action=lambda: reinstall_calico(ctx),
        ),
        StepDefinition(
            name='metrics-server',
            description="Waiting for metrics-server",
            action=lambda: addons.wait_for_metrics_server(ctx),
        ),
        StepDefinition(
            name='verify',
            description="Verifying cluster status",
            action=lambda: control_plane.wait_for_system_pods(ctx),
        ),
        StepDefinition(
            name='temp-files',
            description="Cleaning up temporary files",
            action=lambda: addons.remove_calico_manifest(ctx),
            policy=SOFT,
        ),
    ]


def reset_cluster(ctx: NodeContext) -> RunReport:
    logger.info("Starting cluster reset...")
    return StepExecutor("CKS cluster reset", build_reset_steps(ctx)).run()
