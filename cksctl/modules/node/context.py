"""Everything a step needs to act on the node, bundled for one run."""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List

from cksctl.config import Settings
from .fetch import Fetcher
from .files import HostFS
from .gate import ConfirmationGate
from .invoker import CommandRunner
from .models import ClusterSessionState
from .probe import Prober

logger = logging.getLogger(__name__)


@dataclass
class NodeContext:
    settings: Settings
    runner: CommandRunner
    fs: HostFS
    prober: Prober
    fetcher: Fetcher
    gate: ConfirmationGate
    session: ClusterSessionState
    sleep: Callable[[float], None] = field(default=time.sleep)
    clock: Callable[[], float] = field(default=time.monotonic)

    @property
    def versions(self):
        return self.settings.versions

    @property
    def timeouts(self):
        return self.settings.timeouts

    def kubectl(self, *args: str) -> List[str]:
        """kubectl invocation bound to the cluster admin kubeconfig."""
        return ['kubectl', f'--kubeconfig={self.settings.admin_conf}', *args]

    def operator_bashrc(self) -> str:
        return str(self.session.original_home / '.bashrc')

    def settle(self, seconds: float, what: str) -> None:
        """Pause to let ``what`` catch up; a dry run only logs the pause."""
        if self.runner.dry_run:
            logger.info(f"[dry-run] Would wait {seconds:g}s for {what}")
            return
        self.sleep(seconds)


def build_context(settings: Settings, session: ClusterSessionState, gate: ConfirmationGate,
                  dry_run: bool = False) -> NodeContext:
    """Wire up the real runner, filesystem, prober and fetcher for a run."""
    runner = CommandRunner(dry_run=dry_run)
    fs = HostFS(settings.host_root, dry_run=dry_run)
    return NodeContext(
        settings=settings,
        runner=runner,
        fs=fs,
        prober=Prober(runner, fs, admin_conf=settings.admin_conf),
        fetcher=Fetcher(timeout=settings.timeouts.download, dry_run=dry_run),
        gate=gate,
        session=session,
    )
