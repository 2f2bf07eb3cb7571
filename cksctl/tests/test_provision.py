import logging

import pytest

from cksctl.errors import StepFailedError
from cksctl.modules import build_create_steps, control_plane, create_cluster
from cksctl.modules.node import StepOutcome
from cksctl.tests.conftest import FakeRunner

ALL_BINARIES = ['containerd', 'kubeadm', 'kubelet', 'kubectl', 'crictl', 'etcdctl', 'kubesec', 'kube-bench']

OS_RELEASE = 'NAME="Ubuntu"\nVERSION_ID="24.04"\nVERSION_CODENAME=noble\n'


def prepare_host(tmp_path):
    (tmp_path / 'etc/kubernetes').mkdir(parents=True)
    (tmp_path / 'etc/kubernetes/admin.conf').write_text('apiVersion: v1\n')
    (tmp_path / 'etc/os-release').write_text(OS_RELEASE)
    (tmp_path / 'etc/fstab').write_text('/swap.img none swap sw 0 0\n')


def test_step_order(make_context):
    names = [s.name for s in build_create_steps(make_context())]
    assert names == [
        'system-prep', 'containerd-install', 'containerd-configure', 'kubernetes-packages', 'kubelet-tuning',
        'cluster-init', 'kubeconfig', 'untaint', 'cni', 'metrics-server', 'crictl', 'etcdctl', 'kubesec',
        'kube-bench', 'krew', 'shell', 'verify',
    ]
    assert names.index('containerd-install') < names.index('kubernetes-packages')


def test_fresh_host(make_context, runner, fetcher, tmp_path):
    prepare_host(tmp_path)
    runner.respond('get daemonset calico-node', returncode=1, output='NotFound')
    runner.respond('get deployment metrics-server', returncode=1, output='NotFound')
    runner.respond('containerd config default', output='[plugins]\n  SystemdCgroup = false\n')
    runner.respond('dpkg --print-architecture', output='amd64\n')
    runner.respond('get pods -n kube-system -l k8s-app=calico-node -o name', output='pod/calico-node-x\n')

    report = create_cluster(make_context())

    assert not report.failed
    assert runner.index_of('install -y -qq containerd.io') < runner.index_of('kubeadm=1.33.0-1.1')
    assert runner.index_of('apt-mark hold kubelet kubeadm kubectl') < runner.index_of('kubeadm init')
    assert runner.ran('kubeadm init --pod-network-cidr=192.168.0.0/16 --kubernetes-version=1.33.0')
    assert runner.index_of('kubeadm init') < runner.index_of('apply -f')
    assert runner.ran('taint nodes --all node-role.kubernetes.io/control-plane-')
    assert "#/swap.img" in (tmp_path / 'etc/fstab').read_text()
    assert "SystemdCgroup = true" in (tmp_path / 'etc/containerd/config.toml').read_text()
    assert "noble stable" in (tmp_path / 'etc/apt/sources.list.d/docker.list').read_text()
    assert "/v1.33/deb/" in (tmp_path / 'etc/apt/sources.list.d/kubernetes.list').read_text()
    assert (tmp_path / 'home/ubuntu/.kube/config').exists()
    assert "export KUBECONFIG=/etc/kubernetes/admin.conf" in (tmp_path / 'root/.bashrc').read_text()
    assert [member for _, member in fetcher.installs] == [
        'crictl', 'etcd-v3.5.15-linux-amd64/etcdctl', 'kubesec', 'kube-bench',
    ]
    # etcd version could not be read, so the fallback warning is recorded
    assert report.outcome_of('etcdctl') == StepOutcome.WARNED


def test_second_run_installs_nothing(make_context, runner, fetcher, tmp_path):
    prepare_host(tmp_path)
    (tmp_path / 'home/ubuntu/.krew').mkdir(parents=True)
    ctx = make_context(binaries=ALL_BINARIES)
    ctx.session.skip_cluster_init = True

    report = create_cluster(ctx)

    assert not runner.ran('containerd.io')
    assert not runner.ran('kubeadm=')
    assert not runner.ran('kubeadm init')
    assert not runner.ran('apply -f')
    assert not runner.ran('su --login')
    assert fetcher.installs == []
    assert fetcher.downloads == []
    for name in ('containerd-install', 'kubernetes-packages', 'cluster-init', 'untaint', 'cni', 'metrics-server',
                 'crictl', 'etcdctl', 'kubesec', 'kube-bench', 'krew'):
        assert report.outcome_of(name) == StepOutcome.SKIPPED, name
    assert report.outcome_of('kubeconfig') == StepOutcome.OK


def test_kubeadm_init_failure_is_fatal(make_context, runner, tmp_path):
    prepare_host(tmp_path)
    runner.respond('kubeadm init', returncode=1, output='[ERROR Port-6443]: Port 6443 is in use')
    ctx = make_context(binaries=ALL_BINARIES)
    with pytest.raises(StepFailedError) as exc:
        create_cluster(ctx)
    assert exc.value.step == 'cluster-init'
    assert 'Port 6443' in (tmp_path / 'tmp/kubeadm-init.log').read_text()
    assert not runner.ran('apply -f')


def test_kubeadm_init_output_reaches_the_log(make_context, runner, tmp_path, caplog):
    prepare_host(tmp_path)
    runner.respond('kubeadm init', output='[init] Using Kubernetes version: v1.33.0\n'
                                          'Your Kubernetes control-plane has initialized successfully!\n')
    # cksctl loggers stop propagating once the CLI has configured logging
    logger = logging.getLogger('cksctl.modules.control_plane')
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.INFO, logger='cksctl.modules.control_plane')
    try:
        control_plane.kubeadm_init(make_context())
    finally:
        logger.removeHandler(caplog.handler)
    assert "Using Kubernetes version: v1.33.0" in caplog.text
    assert "initialized successfully" in caplog.text


def test_dry_run_does_not_wait(make_context, clock, tmp_path):
    prepare_host(tmp_path)
    dry = FakeRunner(default_rc=1, dry_run=True)

    report = create_cluster(make_context(fake_runner=dry))

    assert not report.failed
    assert clock.sleeps == []
    # Only read-only checks reach the host
    assert not dry.ran('kubeadm init')
    assert not dry.ran('apply -f')
    assert "#/swap.img" not in (tmp_path / 'etc/fstab').read_text()
    assert not (tmp_path / 'etc/containerd/config.toml').exists()
