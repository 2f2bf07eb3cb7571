"""Side-effect free checks of local system state.

Every check answers "is this already in place?". Absence is the common case
and is reported as False, never raised.
"""
import logging
import shutil
from typing import Callable, Optional

from .files import HostFS
from .invoker import CommandRunner

logger = logging.getLogger(__name__)


class Prober:
    """Decides whether a step's goal is already satisfied on this node."""

    def __init__(self, runner: CommandRunner, fs: HostFS, admin_conf: str = "/etc/kubernetes/admin.conf",
                 which: Callable[[str], Optional[str]] = shutil.which):
        self.runner = runner
        self.fs = fs
        self.admin_conf = admin_conf
        self._which = which

    def kubectl(self, *args: str) -> list:
        return ['kubectl', f'--kubeconfig={self.admin_conf}', *args]

    def binary_present(self, name: str) -> bool:
        found = self._which(name) is not None
        logger.debug(f"binary {name}: {'present' if found else 'absent'}")
        return found

    def service_active(self, unit: str) -> bool:
        return self.runner.succeeds(['systemctl', 'is-active', '--quiet', unit])

    def file_present(self, path: str) -> bool:
        return self.fs.exists(path)

    def dir_present(self, path: str) -> bool:
        return self.fs.is_dir(path)

    def object_present(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        """True if ``kubectl get <kind> <name>`` finds the object."""
        args = ['get', kind, name]
        if namespace:
            args += ['-n', namespace]
        return self.runner.succeeds(self.kubectl(*args))

    def pods_present(self, selector: str, namespace: str) -> bool:
        """True once at least one pod matches the label selector."""
        output = self.runner.output(self.kubectl(
            'get', 'pods', '-n', namespace, '-l', selector, '-o', 'name'))
        return bool(output.strip())

    def cluster_accessible(self) -> bool:
        return self.runner.succeeds(self.kubectl('get', 'nodes'))

    def existing_cluster(self) -> bool:
        """kubelet is running and kubeadm has written an admin kubeconfig."""
        return self.service_active('kubelet') and self.file_present(self.admin_conf)
