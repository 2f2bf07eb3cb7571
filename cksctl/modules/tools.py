"""CLI security tools and shell ergonomics for the operator."""
import logging
from typing import Optional

from cksctl.modules.node import NodeContext, StepResult, render_template

logger = logging.getLogger(__name__)

BIN_DIR = "/usr/local/bin"
CRICTL_CONFIG = "/etc/crictl.yaml"
CONTAINERD_SOCKET = "unix:///run/containerd/containerd.sock"

CRICTL_URL = "https://github.com/kubernetes-sigs/cri-tools/releases/download/{version}/crictl-{version}-linux-{arch}.tar.gz"
ETCD_URL = "https://github.com/etcd-io/etcd/releases/download/{version}/etcd-{version}-linux-{arch}.tar.gz"
KUBESEC_URL = "https://github.com/controlplaneio/kubesec/releases/latest/download/kubesec_linux_{arch}.tar.gz"
KUBE_BENCH_URL = ("https://github.com/aquasecurity/kube-bench/releases/download/v{version}/"
                  "kube-bench_{version}_linux_{arch}.tar.gz")

KREW_PLUGINS = ["who-can", "access-matrix"]
KREW_PATH_LINE = 'export PATH="${KREW_ROOT:-$HOME/.krew}/bin:$PATH"'
KREW_INSTALL_SCRIPT = """set -e
cd "$(mktemp -d)"
OS="$(uname | tr '[:upper:]' '[:lower:]')"
ARCH="$(uname -m | sed -e 's/x86_64/amd64/' -e 's/\\(arm\\)\\(64\\)\\?.*/\\1\\2/' -e 's/aarch64$/arm64/')"
KREW="krew-${OS}_${ARCH}"
curl -fsSLO "https://github.com/kubernetes-sigs/krew/releases/latest/download/${KREW}.tar.gz"
tar zxf "${KREW}.tar.gz"
./"${KREW}" install krew
"""

COMPLETION_MARKER = "kubectl completion bash"
COMPLETION_LINES = [
    "source <(kubectl completion bash)",
    "alias k=kubectl",
    "complete -o default -F __start_kubectl k",
]


def _install_dir(ctx: NodeContext):
    return ctx.fs.path(BIN_DIR)


def install_crictl(ctx: NodeContext) -> StepResult:
    version = ctx.versions.crictl
    logger.info(f"📦 Installing crictl ({version})...")
    ctx.fetcher.install_binary(CRICTL_URL.format(version=version, arch=ctx.settings.arch), 'crictl',
                               _install_dir(ctx))
    ctx.fs.write_text(CRICTL_CONFIG, render_template('crictl.yaml.j2', socket=CONTAINERD_SOCKET, timeout=10))
    return StepResult(message=version)


def etcd_version_from_image(image: str) -> Optional[str]:
    """Release tag for an etcd image reference.

    ``registry.k8s.io/etcd:3.5.21-0`` -> ``v3.5.21``
    """
    image = image.strip().strip("'\"")
    if ':' not in image:
        return None
    tag = image.rsplit(':', 1)[1].split('-', 1)[0]
    if not tag or not tag.lstrip('v')[:1].isdigit():
        return None
    return tag if tag.startswith('v') else f"v{tag}"


def detect_etcd_version(ctx: NodeContext) -> Optional[str]:
    image = ctx.runner.output(ctx.kubectl(
        'get', 'pod', '-n', 'kube-system', '-l', 'component=etcd',
        '-o', 'jsonpath={.items[0].spec.containers[0].image}'))
    return etcd_version_from_image(image) if image else None


def install_etcdctl(ctx: NodeContext) -> StepResult:
    """Install the etcdctl matching the running etcd, falling back to a fixed release."""
    version = detect_etcd_version(ctx)
    warnings = []
    if not version:
        version = ctx.versions.etcd_fallback
        warnings.append(f"Could not detect etcd version, using {version}")
    logger.info(f"📦 Installing etcdctl version: {version}")
    arch = ctx.settings.arch
    ctx.fetcher.install_binary(ETCD_URL.format(version=version, arch=arch),
                               f"etcd-{version}-linux-{arch}/etcdctl", _install_dir(ctx))
    return StepResult(message=version, warnings=warnings)


def install_kubesec(ctx: NodeContext) -> StepResult:
    logger.info("📦 Installing kubesec...")
    ctx.fetcher.install_binary(KUBESEC_URL.format(arch=ctx.settings.arch), 'kubesec', _install_dir(ctx))
    return StepResult(message="latest release")


def install_kube_bench(ctx: NodeContext) -> StepResult:
    version = ctx.versions.kube_bench
    logger.info(f"📦 Installing kube-bench (v{version})...")
    ctx.fetcher.install_binary(KUBE_BENCH_URL.format(version=version, arch=ctx.settings.arch), 'kube-bench',
                               _install_dir(ctx))
    return StepResult(message=f"v{version}")


def krew_installed(ctx: NodeContext) -> bool:
    return ctx.prober.dir_present(str(ctx.session.original_home / '.krew'))


def install_krew(ctx: NodeContext) -> StepResult:
    """Install krew and the RBAC inspection plugins for the operator account."""
    user = ctx.session.original_user
    logger.info(f"📦 Installing krew and kubectl plugins for {user}...")
    ctx.runner.run_as(user, KREW_INSTALL_SCRIPT)
    ctx.fs.ensure_line_present(ctx.operator_bashrc(), KREW_PATH_LINE, marker='krew')

    plugins = ' '.join(KREW_PLUGINS)
    ctx.runner.run_as(user, f"{KREW_PATH_LINE}\nkubectl krew install {plugins}")
    logger.info("✅ krew and plugins installed successfully")
    return StepResult(message=f"plugins: {', '.join(KREW_PLUGINS)}")


def configure_shell(ctx: NodeContext) -> StepResult:
    """kubectl completion and the ``k`` alias for root and the operator."""
    changed = []
    for bashrc in dict.fromkeys(['/root/.bashrc', ctx.operator_bashrc()]):
        if ctx.fs.ensure_block_present(bashrc, COMPLETION_LINES, marker=COMPLETION_MARKER):
            changed.append(bashrc)
    logger.info("kubectl completion and aliases configured")
    return StepResult(message=', '.join(changed) if changed else "already configured")


def tool_versions(ctx: NodeContext) -> dict:
    """Best-effort version strings of the installed tooling for the summary."""
    def first_line(args, default='installed'):
        out = ctx.runner.output(args).strip()
        return out.splitlines()[0] if out else default

    return {
        'Kubernetes': first_line(['kubectl', 'version', '--client'], f"v{ctx.versions.kubernetes}"),
        'containerd': first_line(['containerd', '--version'], 'not found'),
        'crictl': first_line(['crictl', '--version'], 'not found'),
        'etcdctl': first_line(['etcdctl', 'version']),
        'kubesec': first_line(['kubesec', 'version']),
        'kube-bench': f"v{ctx.versions.kube_bench}",
        'krew': 'installed' if krew_installed(ctx) else 'not installed',
    }
