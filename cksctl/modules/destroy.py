"""Remove every Kubernetes component and return the node to a vanilla Ubuntu state.

Every step and every command inside a step is soft: the sequence completes
on a host that never had a cluster, and can be re-run after a partial
failure.
"""
import logging
from typing import List

from cksctl.modules import addons, cleanup, control_plane, summary, system, tools
from cksctl.modules.node import (
    FailurePolicy, NodeContext, RunReport, StepDefinition, StepExecutor, StepResult,
)

logger = logging.getLogger(__name__)

SOFT = FailurePolicy.SOFT

TOOL_BINARIES = ["crictl", "etcdctl", "kubesec", "kube-bench"]
CONFIG_PATHS = [
    # Kubernetes
    "/etc/kubernetes",
    "/var/lib/kubelet",
    "/var/lib/etcd",
    "/etc/systemd/system/kubelet.service.d",
    # Container runtime
    "/etc/containerd",
    "/var/lib/containerd",
    "/run/containerd",
    tools.CRICTL_CONFIG,
    # CNI
    "/etc/cni",
    "/opt/cni",
    "/var/lib/cni",
]
MODULES_LOAD_FILES = [system.MODULES_LOAD_CONF, "/etc/modules-load.d/containerd.conf"]
SYSCTL_FILES = [system.SYSCTL_CONF, "/etc/sysctl.d/99-kubernetes-cri.conf"]
APT_FILES = [system.KUBERNETES_SOURCE, system.DOCKER_SOURCE, system.KUBERNETES_KEYRING, system.DOCKER_KEYRING]
SWAP_FILES = ["/swap.img", "/swapfile"]
TEMP_FILES = [control_plane.KUBEADM_INIT_LOG, addons.CALICO_MANIFEST_PATH, summary.CLUSTER_INFO_FILE]
BASHRC_PATTERNS = [
    "kubectl completion bash",
    "alias k=kubectl",
    "complete -o default -F __start_kubectl k",
    "KUBECONFIG",
]

# Commented-out swap entries
FSTAB_SWAP_COMMENTED = r'^#(\S+\s+\S+\s+swap\s.*)$'


def reset_cluster_state(ctx: NodeContext) -> StepResult:
    if not ctx.prober.binary_present('kubeadm'):
        return StepResult(warnings=["kubeadm not found, skipping reset"])
    if not cleanup.soft(ctx, 'kubeadm', 'reset', '-f').ok:
        return StepResult(warnings=["kubeadm reset failed or already reset"])
    return StepResult()


def stop_services(ctx: NodeContext) -> StepResult:
    for unit in ('kubelet', 'containerd'):
        cleanup.soft(ctx, 'systemctl', 'stop', unit)
        cleanup.soft(ctx, 'systemctl', 'disable', unit)
    return StepResult()


def purge_kubernetes_packages(ctx: NodeContext) -> StepResult:
    cleanup.soft(ctx, 'apt-mark', 'unhold', *system.KUBE_PACKAGES)
    cleanup.soft(ctx, 'apt-get', 'purge', '-y', '-qq', *system.KUBE_PACKAGES, env=system.APT_ENV)
    cleanup.soft(ctx, 'apt-get', 'autoremove', '-y', '-qq', env=system.APT_ENV)
    return StepResult()


def purge_containerd(ctx: NodeContext) -> StepResult:
    cleanup.soft(ctx, 'apt-get', 'purge', '-y', '-qq', 'containerd.io', env=system.APT_ENV)
    cleanup.soft(ctx, 'apt-get', 'autoremove', '-y', '-qq', env=system.APT_ENV)
    return StepResult()


def remove_binaries(ctx: NodeContext) -> StepResult:
    removed = cleanup.remove_paths(ctx, [f"{tools.BIN_DIR}/{name}" for name in TOOL_BINARIES])
    return StepResult(message=f"{removed} binaries removed")


def remove_config_dirs(ctx: NodeContext) -> StepResult:
    home = ctx.session.original_home
    removed = cleanup.remove_paths(ctx, CONFIG_PATHS + [str(home / '.kube'), str(home / '.krew')])
    return StepResult(message=f"{removed} paths removed")


def remove_interfaces(ctx: NodeContext) -> StepResult:
    return cleanup.remove_cni_interfaces(ctx, extra=['docker0'])


def remove_kernel_modules_config(ctx: NodeContext) -> StepResult:
    cleanup.remove_paths(ctx, MODULES_LOAD_FILES)
    for module in system.KERNEL_MODULES:
        ctx.runner.run(['modprobe', '-r', module], policy=SOFT, quiet=True)
    return StepResult()


def remove_sysctl_config(ctx: NodeContext) -> StepResult:
    cleanup.remove_paths(ctx, SYSCTL_FILES)
    ctx.runner.run(['sysctl', '--system'], policy=SOFT, quiet=True)
    return StepResult()


def enable_swap(ctx: NodeContext) -> StepResult:
    """Uncomment swap entries in fstab and turn the swap file back on."""
    ctx.fs.substitute('/etc/fstab', FSTAB_SWAP_COMMENTED, r'\1')
    for swap in SWAP_FILES:
        if ctx.fs.exists(swap):
            if not ctx.runner.run(['swapon', swap], policy=SOFT, quiet=True).ok:
                return StepResult(warnings=["Could not enable swap (may need reboot)"])
            return StepResult(message=swap)
    return StepResult(message="no swap file found")


def remove_apt_repositories(ctx: NodeContext) -> StepResult:
    cleanup.remove_paths(ctx, APT_FILES)
    cleanup.soft(ctx, 'apt-get', 'update', '-qq', env=system.APT_ENV)
    return StepResult()


def clean_bash_config(ctx: NodeContext) -> StepResult:
    """Strip the lines create added to root's and the operator's .bashrc."""
    removed = ctx.fs.remove_matching_lines('/root/.bashrc', BASHRC_PATTERNS)
    operator_rc = ctx.operator_bashrc()
    if operator_rc != '/root/.bashrc':
        removed += ctx.fs.remove_matching_lines(operator_rc, BASHRC_PATTERNS + ['krew'])
    else:
        removed += ctx.fs.remove_matching_lines(operator_rc, ['krew'])
    return StepResult(message=f"{removed} lines removed")


def clean_systemd(ctx: NodeContext) -> StepResult:
    cleanup.soft(ctx, 'systemctl', 'daemon-reload')
    cleanup.soft(ctx, 'systemctl', 'reset-failed')
    return StepResult()


def remove_temp_files(ctx: NodeContext) -> StepResult:
    cleanup.remove_paths(ctx, TEMP_FILES)
    return StepResult()


def final_cleanup(ctx: NodeContext) -> StepResult:
    cleanup.remove_paths(ctx, ['/var/lib/docker'])
    cleanup.soft(ctx, 'apt-get', 'clean')
    return StepResult()


def build_destroy_steps(ctx: NodeContext) -> List[StepDefinition]:
    steps = [
        ('kubeadm-reset', "Resetting Kubernetes cluster", reset_cluster_state),
        ('services', "Stopping and disabling services", stop_services),
        ('kubernetes-packages', "Removing Kubernetes packages", purge_kubernetes_packages),
        ('containerd', "Removing containerd", purge_containerd),
        ('binaries', "Removing installed binaries", remove_binaries),
        ('config-dirs', "Removing configuration directories", remove_config_dirs),
        ('iptables', "Cleaning up iptables rules", cleanup.flush_iptables),
        ('interfaces', "Removing virtual network interfaces", remove_interfaces),
        ('kernel-modules', "Removing kernel modules configuration", remove_kernel_modules_config),
        ('sysctl', "Removing sysctl configuration", remove_sysctl_config),
        ('swap', "Re-enabling swap", enable_swap),
        ('apt-repositories', "Removing APT repositories", remove_apt_repositories),
        ('bash-config', "Cleaning up bash configurations", clean_bash_config),
        ('systemd', "Cleaning up systemd", clean_systemd),
        ('temp-files', "Cleaning up temporary files", remove_temp_files),
        ('final-cleanup', "Running final cleanup", final_cleanup),
    ]
    return [
        StepDefinition(name=name, description=description, action=(lambda fn=fn: fn(ctx)),
                       idempotent=False, policy=SOFT)
        for name, description, fn in steps
    ]


def destroy_cluster(ctx: NodeContext) -> RunReport:
    logger.info("Starting cluster destruction...")
    return StepExecutor("CKS cluster destruction", build_destroy_steps(ctx)).run()


def reboot(ctx: NodeContext) -> None:
    logger.info(f"Rebooting in {ctx.timeouts.reboot_delay:g} seconds...")
    ctx.settle(ctx.timeouts.reboot_delay, "the reboot countdown")
    ctx.runner.run(['reboot'], policy=SOFT)
