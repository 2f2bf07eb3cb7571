"""Entry checks and per-run session state."""
import logging
import os
import pwd
from pathlib import Path
from typing import Callable, Mapping, Optional

from cksctl.errors import ClusterExistsError, PrivilegeError
from .gate import ConfirmationGate, TokenMode
from .models import ClusterSessionState
from .probe import Prober

logger = logging.getLogger(__name__)


def require_root(geteuid: Optional[Callable[[], int]] = None) -> None:
    if (geteuid or os.geteuid)() != 0:
        raise PrivilegeError("This command must be run as root (use sudo)")


def resolve_operator(environ: Mapping[str, str] = os.environ) -> ClusterSessionState:
    """Work out which account invoked sudo and where its home directory is."""
    user = environ.get('SUDO_USER') or environ.get('USER') or 'root'
    try:
        home = Path(pwd.getpwnam(user).pw_dir)
    except KeyError:
        home = Path('/root') if user == 'root' else Path('/home') / user
        logger.warning(f"User {user} not found in passwd database, assuming home {home}")
    return ClusterSessionState(original_user=user, original_home=home)


def check_existing_cluster(session: ClusterSessionState, prober: Prober, gate: ConfirmationGate,
                           show: Optional[Callable[[str], None]] = None) -> ClusterSessionState:
    """Detect a running cluster and ask whether to keep it.

    Sets ``cluster_already_exists`` and ``skip_cluster_init`` on the session.

    Raises:
        ClusterExistsError: If a running cluster is found and the operator does not want to keep it
    """
    if not prober.existing_cluster():
        return session

    logger.warning("Existing Kubernetes cluster detected!")
    if not prober.cluster_accessible():
        logger.warning("kubelet is active but the API server is not reachable; continuing with initialization")
        return session

    session.cluster_already_exists = True
    logger.warning("Cluster is running and accessible")
    nodes = prober.runner.output(prober.kubectl('get', 'nodes'))
    if nodes and show:
        show(nodes)

    if gate.confirm("Skip cluster initialization and only install missing tools?", TokenMode.YES_NO):
        logger.info("Skipping to tool installation...")
        session.skip_cluster_init = True
        return session

    raise ClusterExistsError("Please run 'cksctl destroy' first, then retry this command")
