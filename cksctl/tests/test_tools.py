import pytest

from cksctl.modules import cleanup, tools


@pytest.mark.parametrize("image,expected", [
    ("registry.k8s.io/etcd:3.5.21-0", "v3.5.21"),
    ("registry.k8s.io/etcd:3.5.15-0", "v3.5.15"),
    ("quay.io/coreos/etcd:v3.5.9", "v3.5.9"),
    ("'registry.k8s.io/etcd:3.5.12-0'", "v3.5.12"),
    ("registry.k8s.io/etcd", None),
    ("registry.k8s.io/etcd:latest", None),
    ("", None),
])
def test_etcd_version_from_image(image, expected):
    assert tools.etcd_version_from_image(image) == expected


def test_parse_link_names():
    output = (
        "1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN\n"
        "2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500\n"
        "5: cali1a2b3c4d@if3: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1450\n"
        "6: tunl0@NONE: <NOARP,UP,LOWER_UP> mtu 1480\n"
        "7: vxlan.calico: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1450\n"
    )
    names = cleanup.parse_link_names(output)
    assert names == ['lo', 'eth0', 'cali1a2b3c4d', 'tunl0', 'vxlan.calico']
    assert [n for n in names if cleanup.CNI_INTERFACE_PATTERN.search(n)] == \
        ['cali1a2b3c4d', 'tunl0', 'vxlan.calico']


def test_etcdctl_matches_running_etcd(make_context, runner, fetcher):
    runner.respond('component=etcd', output='registry.k8s.io/etcd:3.5.21-0')
    result = tools.install_etcdctl(make_context())
    assert result.message == 'v3.5.21'
    assert result.warnings == []
    url, member = fetcher.installs[0]
    assert url.endswith('/v3.5.21/etcd-v3.5.21-linux-amd64.tar.gz')
    assert member == 'etcd-v3.5.21-linux-amd64/etcdctl'


def test_etcdctl_falls_back_with_warning(make_context, runner, fetcher):
    runner.respond('component=etcd', returncode=1, output='No resources found')
    result = tools.install_etcdctl(make_context())
    assert result.message == 'v3.5.15'
    assert result.warnings


def test_crictl_writes_client_config(make_context, fetcher, tmp_path):
    tools.install_crictl(make_context())
    assert (tmp_path / 'usr/local/bin/crictl').exists()
    config = (tmp_path / 'etc/crictl.yaml').read_text()
    assert "runtime-endpoint: unix:///run/containerd/containerd.sock" in config
    assert fetcher.installs[0][0].endswith('crictl-v1.31.1-linux-amd64.tar.gz')


def test_configure_shell_is_idempotent(make_context, tmp_path):
    ctx = make_context()
    tools.configure_shell(ctx)
    tools.configure_shell(ctx)
    for bashrc in (tmp_path / 'root/.bashrc', tmp_path / 'home/ubuntu/.bashrc'):
        content = bashrc.read_text()
        assert content.count("alias k=kubectl") == 1
        assert "source <(kubectl completion bash)" in content


def test_krew_runs_as_operator(make_context, runner, tmp_path):
    ctx = make_context()
    tools.install_krew(ctx)
    su_calls = [c for c in runner.calls if c[0] == 'su']
    assert len(su_calls) == 2
    assert all(c[-1] == ctx.session.original_user for c in su_calls)
    assert "kubectl krew install who-can access-matrix" in su_calls[1][-2]
    assert tools.KREW_PATH_LINE in (tmp_path / 'home/ubuntu/.bashrc').read_text()
