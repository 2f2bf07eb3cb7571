import pytest

from cksctl.errors import StepFailedError
from cksctl.modules import build_reset_steps, reset_cluster
from cksctl.modules.node import FailurePolicy, StepOutcome

LINKS = (
    "1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536\n"
    "2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500\n"
    "9: cali0ab12cd34ef@if2: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1450\n"
)


def write(root, path, content=''):
    target = root / path.lstrip('/')
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    return target


def practice_host(tmp_path):
    """A node after a few practice scenarios."""
    write(tmp_path, '/etc/kubernetes/admin.conf', 'apiVersion: v1\n')
    write(tmp_path, '/etc/kubernetes/audit-policy.yaml', 'apiVersion: audit.k8s.io/v1\n')
    write(tmp_path, '/etc/kubernetes/manifests/kube-apiserver.yaml')
    write(tmp_path, '/etc/kubernetes/manifests/kube-apiserver.yaml.backup')
    write(tmp_path, '/etc/falco/falco_rules.local.yaml')
    write(tmp_path, '/etc/apparmor.d/k8s-deny-write')
    write(tmp_path, '/etc/apparmor.d/usr.sbin.cupsd')
    write(tmp_path, '/var/lib/etcd/member/snap/db')
    write(tmp_path, '/etc/cni/net.d/10-calico.conflist')


def test_teardown_is_soft_and_rebuild_is_fatal(make_context):
    steps = {s.name: s.policy for s in build_reset_steps(make_context())}
    for name in ('kubeadm-reset', 'residual-files', 'security-configs', 'iptables', 'cni-interfaces'):
        assert steps[name] == FailurePolicy.SOFT, name
    for name in ('containerd-restart', 'cluster-init', 'cni'):
        assert steps[name] == FailurePolicy.FATAL, name


def test_reset_cleans_practice_artifacts_and_rebuilds(make_context, runner, tmp_path):
    practice_host(tmp_path)
    runner.respond('kubeadm reset', returncode=1, output='already reset')
    runner.respond('iptables', returncode=1)
    runner.respond('ip -o link show', output=LINKS)
    runner.respond('get pods -n kube-system -l k8s-app=calico-node -o name', output='pod/calico-node-x\n')

    report = reset_cluster(make_context())

    assert not report.failed
    assert report.outcome_of('kubeadm-reset') == StepOutcome.OK
    assert not (tmp_path / 'var/lib/etcd').exists()
    assert (tmp_path / 'etc/cni/net.d').is_dir()
    assert not (tmp_path / 'etc/cni/net.d/10-calico.conflist').exists()
    assert not (tmp_path / 'etc/kubernetes/manifests/kube-apiserver.yaml.backup').exists()
    assert (tmp_path / 'etc/kubernetes/manifests/kube-apiserver.yaml').exists()
    assert not (tmp_path / 'etc/falco/falco_rules.local.yaml').exists()
    assert not (tmp_path / 'etc/kubernetes/audit-policy.yaml').exists()
    assert not (tmp_path / 'etc/apparmor.d/k8s-deny-write').exists()
    assert (tmp_path / 'etc/apparmor.d/usr.sbin.cupsd').exists()
    assert runner.ran('apparmor_parser -R')
    assert runner.ran('ip link delete cali0ab12cd34ef')
    assert not runner.ran('ip link delete eth0')

    assert runner.index_of('systemctl restart containerd') < runner.index_of('kubeadm init')
    assert runner.index_of('kubeadm init') < runner.index_of('apply -f')
    assert not (tmp_path / 'tmp/calico.yaml').exists()


def test_rebuild_failure_stops_reset(make_context, runner, tmp_path):
    practice_host(tmp_path)
    runner.respond('systemctl restart containerd', returncode=1, output='Unit containerd.service not found.')
    with pytest.raises(StepFailedError) as exc:
        reset_cluster(make_context())
    assert exc.value.step == 'containerd-restart'
    assert not runner.ran('kubeadm init')
