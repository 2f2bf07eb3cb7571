"""Node preparation: kernel settings, container runtime and Kubernetes packages."""
import logging

from cksctl.errors import ProvisionError
from cksctl.modules.node import FailurePolicy, NodeContext, StepResult, render_template

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
BASE_PACKAGES = ["apt-transport-https", "ca-certificates", "curl", "gpg", "socat", "conntrack"]
KERNEL_MODULES = ["overlay", "br_netfilter"]
SYSCTL_PARAMS = {
    "net.bridge.bridge-nf-call-iptables": 1,
    "net.bridge.bridge-nf-call-ip6tables": 1,
    "net.ipv4.ip_forward": 1,
}
KUBE_PACKAGES = ["kubelet", "kubeadm", "kubectl"]

MODULES_LOAD_CONF = "/etc/modules-load.d/k8s.conf"
SYSCTL_CONF = "/etc/sysctl.d/k8s.conf"
KEYRINGS_DIR = "/etc/apt/keyrings"
DOCKER_KEY_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_KEYRING = "/etc/apt/keyrings/docker.asc"
DOCKER_SOURCE = "/etc/apt/sources.list.d/docker.list"
DOCKER_REPO = "https://download.docker.com/linux/ubuntu"
KUBERNETES_REPO = "https://pkgs.k8s.io/core:/stable:/{minor}/deb/"
KUBERNETES_KEYRING = "/etc/apt/keyrings/kubernetes-apt-keyring.gpg"
KUBERNETES_SOURCE = "/etc/apt/sources.list.d/kubernetes.list"
CONTAINERD_CONFIG = "/etc/containerd/config.toml"
KUBELET_DROPIN = "/etc/systemd/system/kubelet.service.d/20-resource-optimization.conf"

# Swap entries not yet commented out
FSTAB_SWAP_ACTIVE = r'^(?!#)(.*\sswap\s.*)$'


def apt_get(ctx: NodeContext, *args: str, policy: FailurePolicy = FailurePolicy.FATAL):
    return ctx.runner.run(['apt-get', *args], policy=policy, env=APT_ENV)


def os_release_codename(ctx: NodeContext) -> str:
    """VERSION_CODENAME from /etc/os-release (e.g. 'noble')."""
    for line in ctx.fs.read_text('/etc/os-release').splitlines():
        key, _, value = line.partition('=')
        if key.strip() == 'VERSION_CODENAME':
            return value.strip().strip('"')
    raise ProvisionError("Could not determine VERSION_CODENAME from /etc/os-release")


def prepare_system(ctx: NodeContext) -> StepResult:
    """Disable swap, load kernel modules, set sysctls and install base packages."""
    logger.info("Disabling swap...")
    ctx.runner.run(['swapoff', '-a'])
    ctx.fs.substitute('/etc/fstab', FSTAB_SWAP_ACTIVE, r'#\1')

    logger.info("Loading kernel modules...")
    ctx.fs.write_text(MODULES_LOAD_CONF, render_template('modules-load.conf.j2', modules=KERNEL_MODULES))
    for module in KERNEL_MODULES:
        ctx.runner.run(['modprobe', module])

    logger.info("Configuring sysctl parameters...")
    ctx.fs.write_text(SYSCTL_CONF, render_template('sysctl-k8s.conf.j2', params=SYSCTL_PARAMS))
    ctx.runner.run(['sysctl', '--system'])

    logger.info("Updating system packages...")
    apt_get(ctx, 'update', '-qq')
    apt_get(ctx, 'install', '-y', '-qq', *BASE_PACKAGES)
    return StepResult()


def install_containerd(ctx: NodeContext) -> StepResult:
    """Install containerd.io from the Docker apt repository."""
    logger.info("📦 Installing containerd...")
    ctx.fs.mkdir(KEYRINGS_DIR)
    ctx.fetcher.download(DOCKER_KEY_URL, ctx.fs.path(DOCKER_KEYRING))
    ctx.runner.run(['chmod', 'a+r', str(ctx.fs.path(DOCKER_KEYRING))])

    arch = ctx.runner.output(['dpkg', '--print-architecture']).strip() or ctx.settings.arch
    ctx.fs.write_text(DOCKER_SOURCE, render_template(
        'apt-source.list.j2', arch=arch, keyring=DOCKER_KEYRING, url=DOCKER_REPO,
        suite=os_release_codename(ctx), component='stable'))

    apt_get(ctx, 'update', '-qq')
    apt_get(ctx, 'install', '-y', '-qq', 'containerd.io')
    return StepResult(message="containerd.io")


def configure_containerd(ctx: NodeContext) -> StepResult:
    """Regenerate the containerd config with the systemd cgroup driver and restart it."""
    logger.info("Configuring containerd...")
    ctx.fs.mkdir('/etc/containerd')
    default = ctx.runner.run(['containerd', 'config', 'default']).output
    ctx.fs.write_text(CONTAINERD_CONFIG, default.replace('SystemdCgroup = false', 'SystemdCgroup = true'))

    if not ctx.runner.run(['containerd', 'config', 'dump'], policy=FailurePolicy.SOFT, quiet=True).ok:
        raise ProvisionError(f"containerd config validation failed. Check {CONTAINERD_CONFIG}")

    ctx.runner.run(['systemctl', 'daemon-reload'])
    ctx.runner.run(['systemctl', 'restart', 'containerd'])
    ctx.runner.run(['systemctl', 'enable', 'containerd'])

    if not ctx.runner.dry_run and not ctx.prober.service_active('containerd'):
        raise ProvisionError("containerd failed to start. Check: sudo journalctl -u containerd -n 50")

    logger.info("✅ containerd installed and configured successfully")
    return StepResult(message="SystemdCgroup = true")


def install_kubernetes_packages(ctx: NodeContext) -> StepResult:
    """Install pinned kubelet/kubeadm/kubectl from pkgs.k8s.io and hold them."""
    versions = ctx.versions
    logger.info(f"📦 Installing Kubernetes components (v{versions.kubernetes})...")
    repo = KUBERNETES_REPO.format(minor=versions.kubernetes_minor)

    ctx.fs.mkdir(KEYRINGS_DIR)
    release_key = ctx.fs.path('/tmp/kubernetes-release.key')
    ctx.fetcher.download(repo + 'Release.key', release_key)
    ctx.runner.run(['gpg', '--batch', '--yes', '--dearmor', '-o', str(ctx.fs.path(KUBERNETES_KEYRING)),
                    str(release_key)])
    ctx.fs.remove('/tmp/kubernetes-release.key')

    ctx.fs.write_text(KUBERNETES_SOURCE, render_template(
        'apt-source.list.j2', arch=None, keyring=KUBERNETES_KEYRING, url=repo, suite='/', component=None))

    apt_get(ctx, 'update', '-qq')
    pinned = [f"{pkg}={versions.kubernetes_package}" for pkg in KUBE_PACKAGES]
    apt_get(ctx, 'install', '-y', '-qq', *pinned)
    # Hold packages to prevent accidental upgrades
    ctx.runner.run(['apt-mark', 'hold', *KUBE_PACKAGES])

    logger.info("✅ Kubernetes components installed successfully")
    return StepResult(message=f"v{versions.kubernetes}")


def tune_kubelet(ctx: NodeContext) -> StepResult:
    """Reserve resources for the system and kubelet on a small node."""
    ctx.fs.write_text(KUBELET_DROPIN, render_template('kubelet-resources.conf.j2',
                                                      extra_args=ctx.settings.kubelet.extra_args))
    ctx.runner.run(['systemctl', 'daemon-reload'])
    logger.info("kubelet configured for memory optimization")
    return StepResult(message=f"max-pods={ctx.settings.kubelet.max_pods}")
