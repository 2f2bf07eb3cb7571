from cksctl.modules import destroy, system
from cksctl.modules.node import HostFS, render_template

FSTAB = """UUID=1234 / ext4 defaults 0 1
# swap was on /dev/sda5 during installation
/swap.img none swap sw 0 0
"""


def test_ensure_line_present_appends_once(tmp_path):
    fs = HostFS(tmp_path)
    line = "export KUBECONFIG=/etc/kubernetes/admin.conf"
    assert fs.ensure_line_present('/root/.bashrc', line, marker='KUBECONFIG=')
    assert not fs.ensure_line_present('/root/.bashrc', line, marker='KUBECONFIG=')
    assert (tmp_path / 'root/.bashrc').read_text() == line + "\n"


def test_ensure_line_present_respects_existing_marker(tmp_path):
    bashrc = tmp_path / 'home/ubuntu/.bashrc'
    bashrc.parent.mkdir(parents=True)
    bashrc.write_text("alias ll='ls -l'\nexport KUBECONFIG=$HOME/.kube/config")
    fs = HostFS(tmp_path)
    assert not fs.ensure_line_present('/home/ubuntu/.bashrc', "export KUBECONFIG=/x", marker='KUBECONFIG=')
    assert fs.ensure_line_present('/home/ubuntu/.bashrc', "alias k=kubectl")
    assert bashrc.read_text().endswith("KUBECONFIG=$HOME/.kube/config\nalias k=kubectl\n")


def test_remove_matching_lines_keeps_unrelated_content(tmp_path):
    bashrc = tmp_path / 'root/.bashrc'
    bashrc.parent.mkdir(parents=True)
    bashrc.write_text("alias ll='ls -l'\nsource <(kubectl completion bash)\nalias k=kubectl\nexport EDITOR=vim\n")
    fs = HostFS(tmp_path)
    assert fs.remove_matching_lines('/root/.bashrc', destroy.BASHRC_PATTERNS) == 2
    assert bashrc.read_text() == "alias ll='ls -l'\nexport EDITOR=vim\n"
    assert fs.remove_matching_lines('/root/.bashrc', destroy.BASHRC_PATTERNS) == 0


def test_remove_matching_lines_on_missing_file(tmp_path):
    assert HostFS(tmp_path).remove_matching_lines('/root/.bashrc', ['krew']) == 0


def test_swap_lines_commented_and_restored(tmp_path):
    fstab = tmp_path / 'etc/fstab'
    fstab.parent.mkdir(parents=True)
    fstab.write_text(FSTAB)
    fs = HostFS(tmp_path)

    assert fs.substitute('/etc/fstab', system.FSTAB_SWAP_ACTIVE, r'#\1') == 1
    assert "#/swap.img none swap sw 0 0" in fstab.read_text()
    # Already commented lines are left alone
    assert fs.substitute('/etc/fstab', system.FSTAB_SWAP_ACTIVE, r'#\1') == 0

    assert fs.substitute('/etc/fstab', destroy.FSTAB_SWAP_COMMENTED, r'\1') == 1
    assert fstab.read_text() == FSTAB
    # Installer notes mentioning swap are not entries
    assert "# swap was on /dev/sda5" in fstab.read_text()


def test_remove_is_quiet_about_missing_paths(tmp_path):
    fs = HostFS(tmp_path)
    assert not fs.remove('/etc/kubernetes')
    (tmp_path / 'etc/kubernetes/manifests').mkdir(parents=True)
    assert fs.remove('/etc/kubernetes')
    assert not (tmp_path / 'etc/kubernetes').exists()


def test_glob_and_clear_dir_use_node_paths(tmp_path):
    profiles = tmp_path / 'etc/apparmor.d'
    profiles.mkdir(parents=True)
    for name in ('k8s-deny-write', 'k8s-nginx', 'usr.sbin.cupsd'):
        (profiles / name).write_text('')
    fs = HostFS(tmp_path)
    assert fs.glob('/etc/apparmor.d/k8s-*') == ['/etc/apparmor.d/k8s-deny-write', '/etc/apparmor.d/k8s-nginx']

    assert fs.clear_dir('/etc/apparmor.d') == 3
    assert profiles.is_dir()
    assert list(profiles.iterdir()) == []


def test_dry_run_leaves_files_untouched(tmp_path):
    fs = HostFS(tmp_path, dry_run=True)
    fs.write_text('/etc/sysctl.d/k8s.conf', 'net.ipv4.ip_forward = 1\n')
    assert not (tmp_path / 'etc/sysctl.d/k8s.conf').exists()


def test_sysctl_template():
    rendered = render_template('sysctl-k8s.conf.j2', params=system.SYSCTL_PARAMS)
    lines = rendered.splitlines()
    assert len(lines) == 3
    assert lines[2].startswith("net.ipv4.ip_forward")
    assert lines[2].endswith("= 1")


def test_apt_source_template():
    with_arch = render_template('apt-source.list.j2', arch='amd64', keyring=system.DOCKER_KEYRING,
                                url=system.DOCKER_REPO, suite='noble', component='stable')
    assert with_arch == ("deb [arch=amd64 signed-by=/etc/apt/keyrings/docker.asc] "
                         "https://download.docker.com/linux/ubuntu noble stable\n")
    flat = render_template('apt-source.list.j2', arch=None, keyring=system.KUBERNETES_KEYRING,
                           url="https://pkgs.k8s.io/core:/stable:/v1.33/deb/", suite='/', component=None)
    assert flat == ("deb [signed-by=/etc/apt/keyrings/kubernetes-apt-keyring.gpg] "
                    "https://pkgs.k8s.io/core:/stable:/v1.33/deb/ /\n")


def test_kubelet_dropin_template(settings):
    rendered = render_template('kubelet-resources.conf.j2', extra_args=settings.kubelet.extra_args)
    assert rendered.startswith("[Service]\n")
    assert "--max-pods=50" in rendered
    assert "--eviction-hard=memory.available<256Mi" in rendered
