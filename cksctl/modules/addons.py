"""Cluster add-ons applied from upstream manifests: Calico CNI and metrics-server."""
import json
import logging

from cksctl.modules.node import FailurePolicy, NodeContext, StepResult
from cksctl.modules.node.poller import wait_for_condition, wait_for_pods

logger = logging.getLogger(__name__)

CALICO_MANIFEST_URL = "https://raw.githubusercontent.com/projectcalico/calico/{version}/manifests/calico.yaml"
CALICO_MANIFEST_PATH = "/tmp/calico.yaml"
METRICS_SERVER_URL = "https://github.com/kubernetes-sigs/metrics-server/releases/latest/download/components.yaml"

# Kubelet serving certs on a kubeadm single node are self-signed
METRICS_SERVER_PATCH = [
    {"op": "add", "path": "/spec/template/spec/containers/0/args/-", "value": "--kubelet-insecure-tls"}
]


def calico_installed(ctx: NodeContext) -> bool:
    return ctx.prober.object_present('daemonset', 'calico-node', 'kube-system')


def metrics_server_installed(ctx: NodeContext) -> bool:
    return ctx.prober.object_present('deployment', 'metrics-server', 'kube-system')


def install_calico(ctx: NodeContext) -> StepResult:
    """Apply the Calico manifest and wait for its pods.

    The apply is fatal; readiness timeouts are only warnings because the
    following steps tolerate a CNI that is still converging.
    """
    version = ctx.versions.calico
    logger.info(f"📦 Installing Calico CNI ({version})...")
    ctx.fetcher.download(CALICO_MANIFEST_URL.format(version=version), ctx.fs.path(CALICO_MANIFEST_PATH))
    ctx.runner.run(ctx.kubectl('apply', '-f', str(ctx.fs.path(CALICO_MANIFEST_PATH))))

    logger.info("⏳ Waiting for Calico pods to be ready (may take 3-5 minutes)...")
    warnings = []
    timeouts = ctx.timeouts
    if not wait_for_pods(ctx.runner, ctx.kubectl(), 'k8s-app=calico-node', 'kube-system',
                         timeouts.calico_node, interval=timeouts.poll_interval,
                         existence_attempts=timeouts.existence_attempts,
                         pods_present=lambda: ctx.prober.pods_present('k8s-app=calico-node', 'kube-system'),
                         sleep=ctx.sleep, clock=ctx.clock):
        warnings.append("Calico node pods may still be initializing")
    if not wait_for_condition(ctx.runner, ctx.kubectl(),
                              ['pods', '-l', 'k8s-app=calico-kube-controllers', '-n', 'kube-system'],
                              timeouts.calico_controllers):
        warnings.append("Calico controller may still be initializing")

    if not warnings:
        logger.info("✅ Calico CNI installed successfully")
    return StepResult(message=f"Calico {version}", warnings=warnings)


def install_metrics_server(ctx: NodeContext) -> StepResult:
    logger.info("📦 Installing metrics-server...")
    ctx.runner.run(ctx.kubectl('apply', '-f', METRICS_SERVER_URL))
    ctx.runner.run(ctx.kubectl('patch', 'deployment', 'metrics-server', '-n', 'kube-system',
                               '--type=json', f'-p={json.dumps(METRICS_SERVER_PATCH)}'))
    logger.info("metrics-server installed (may take 1-2 minutes to be ready)")
    return StepResult(message="latest release")


def wait_for_metrics_server(ctx: NodeContext) -> StepResult:
    """Wait for metrics-server, if the cluster has it."""
    if not metrics_server_installed(ctx):
        logger.info("metrics-server not installed, skipping")
        return StepResult(message="not installed")
    ready = wait_for_condition(ctx.runner, ctx.kubectl(),
                               ['pod', '-l', 'k8s-app=metrics-server', '-n', 'kube-system'],
                               ctx.timeouts.metrics_server)
    if not ready:
        return StepResult(warnings=["metrics-server may still be initializing"])
    logger.info("metrics-server ready")
    return StepResult()


def remove_calico_manifest(ctx: NodeContext) -> StepResult:
    ctx.fs.remove(CALICO_MANIFEST_PATH)
    return StepResult()
