"""
Building blocks for driving a single Kubernetes node.

- invoker: external command execution with fatal/soft failure policies
- probe: side-effect free "already in place?" checks
- poller: fixed-interval readiness polling
- gate: interactive confirmation
- executor: ordered step execution
- files: host file edits and template rendering
- fetch: artifact downloads
"""

from .models import (
    ClusterSessionState, CommandResult, FailurePolicy, RunReport,
    StepDefinition, StepOutcome, StepResult,
)
from .invoker import CommandRunner
from .probe import Prober
from .poller import PollResult, poll_until, wait_for_pods
from .gate import ConfirmationGate, TokenMode
from .executor import StepExecutor
from .files import HostFS, render_template
from .fetch import Fetcher
from .context import NodeContext, build_context

__all__ = [
    'ClusterSessionState',
    'CommandResult',
    'FailurePolicy',
    'RunReport',
    'StepDefinition',
    'StepOutcome',
    'StepResult',
    'CommandRunner',
    'Prober',
    'PollResult',
    'poll_until',
    'wait_for_pods',
    'ConfirmationGate',
    'TokenMode',
    'StepExecutor',
    'HostFS',
    'render_template',
    'Fetcher',
    'NodeContext',
    'build_context',
]
