"""kubeadm control plane: init, kubeconfig hand-off and taint removal.

Shared by ``create`` and ``reset``.
"""
import logging

from cksctl.errors import CommandError
from cksctl.modules.node import FailurePolicy, NodeContext, StepResult
from cksctl.modules.node.poller import wait_for_condition

logger = logging.getLogger(__name__)

KUBEADM_INIT_LOG = "/tmp/kubeadm-init.log"
CONTROL_PLANE_TAINT = "node-role.kubernetes.io/control-plane-"
KUBECONFIG_EXPORT = "export KUBECONFIG={admin_conf}"


def kubeadm_init(ctx: NodeContext) -> StepResult:
    """Bootstrap the control plane; output is kept in /tmp/kubeadm-init.log."""
    versions = ctx.versions
    args = [
        'kubeadm', 'init',
        f'--pod-network-cidr={versions.pod_cidr}',
        f'--kubernetes-version={versions.kubernetes}',
        '--ignore-preflight-errors=NumCPU,Mem',
    ]
    result = ctx.runner.run(args, policy=FailurePolicy.SOFT, quiet=True)
    for line in result.output.splitlines():
        logger.info(f"  {line}")
    if result.output:
        ctx.fs.write_text(KUBEADM_INIT_LOG, result.output)
    if not result.ok:
        raise CommandError(args, result.returncode, result.output)

    # kubectl for root in new shells
    ctx.fs.ensure_line_present('/root/.bashrc', KUBECONFIG_EXPORT.format(admin_conf=ctx.settings.admin_conf),
                               marker='KUBECONFIG=')
    logger.info("✅ Cluster initialized successfully")
    return StepResult(message=f"Kubernetes {versions.kubernetes}")


def configure_kubeconfig(ctx: NodeContext) -> StepResult:
    """Copy admin.conf to the operator's ~/.kube/config and hand it over."""
    session = ctx.session
    kube_dir = session.original_home / '.kube'
    ctx.fs.mkdir(kube_dir)
    ctx.fs.copy(ctx.settings.admin_conf, kube_dir / 'config')
    ctx.fs.chown_tree(kube_dir, session.original_user)
    logger.info(f"kubectl configured for {session.original_user}")
    return StepResult(message=str(kube_dir / 'config'))


def untaint_control_plane(ctx: NodeContext) -> StepResult:
    """Allow workloads on the single node once it reports Ready."""
    warnings = []
    ctx.settle(ctx.timeouts.post_init_settle, "the control plane to settle")
    if not wait_for_condition(ctx.runner, ctx.kubectl(), ['node', '--all'], ctx.timeouts.node_ready):
        warnings.append("Node not ready yet, continuing...")

    result = ctx.runner.run(ctx.kubectl('taint', 'nodes', '--all', CONTROL_PLANE_TAINT),
                            policy=FailurePolicy.SOFT, quiet=True)
    if not result.ok:
        warnings.append("Taint already removed or not present")
    logger.info("Control-plane node untainted")
    return StepResult(warnings=warnings)


def wait_for_kube_proxy(ctx: NodeContext) -> StepResult:
    ready = wait_for_condition(ctx.runner, ctx.kubectl(),
                               ['pods', '-l', 'k8s-app=kube-proxy', '-n', 'kube-system'],
                               ctx.timeouts.kube_proxy)
    if not ready:
        return StepResult(warnings=["kube-proxy may still be starting"])
    logger.info("kube-proxy is running")
    return StepResult()


def wait_for_system_pods(ctx: NodeContext) -> StepResult:
    """Final readiness wait over everything in kube-system."""
    logger.info("Waiting for all system pods to be ready...")
    ready = wait_for_condition(ctx.runner, ctx.kubectl(), ['pods', '--all', '-n', 'kube-system'],
                               ctx.timeouts.system_pods)
    if not ready:
        return StepResult(warnings=["Some pods may still be initializing"])
    return StepResult(message="all kube-system pods Ready")
