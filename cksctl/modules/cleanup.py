"""Best-effort teardown helpers shared by reset and destroy.

Everything here runs under the soft failure policy: a rule, interface or
file that is already gone counts as done.
"""
import logging
import re
from typing import Iterable, List

from cksctl.modules.node import FailurePolicy, NodeContext, StepResult

logger = logging.getLogger(__name__)

IPTABLES_TABLES = ["filter", "nat", "mangle"]
CNI_INTERFACE_PATTERN = re.compile(r'cali|tunl|vxlan\.calico|flannel|weave')


def soft(ctx: NodeContext, *args: str, env=None):
    return ctx.runner.run(list(args), policy=FailurePolicy.SOFT, env=env)


def flush_iptables(ctx: NodeContext) -> StepResult:
    """Flush all rules and delete custom chains in filter, nat and mangle (v4 and v6)."""
    for binary in ("iptables", "ip6tables"):
        for flag in ("-F", "-X"):
            for table in IPTABLES_TABLES:
                soft(ctx, binary, '-t', table, flag)
    logger.info("iptables rules flushed")
    return StepResult()


def parse_link_names(output: str) -> List[str]:
    """Interface names from ``ip -o link show`` output (``3: cali1a2b@if4: <...>``)."""
    names = []
    for line in output.splitlines():
        parts = line.split(':', 2)
        if len(parts) < 3:
            continue
        name = parts[1].strip().split('@', 1)[0]
        if name:
            names.append(name)
    return names


def cni_interfaces(ctx: NodeContext) -> List[str]:
    output = ctx.runner.output(['ip', '-o', 'link', 'show'])
    return [name for name in parse_link_names(output) if CNI_INTERFACE_PATTERN.search(name)]


def remove_cni_interfaces(ctx: NodeContext, extra: Iterable[str] = ()) -> StepResult:
    """Delete virtual interfaces left behind by Calico, Flannel or Weave."""
    removed = []
    for iface in cni_interfaces(ctx):
        if ctx.runner.run(['ip', 'link', 'delete', iface], policy=FailurePolicy.SOFT, quiet=True).ok:
            logger.info(f"  - Removed interface: {iface}")
            removed.append(iface)
    for iface in extra:
        ctx.runner.run(['ip', 'link', 'delete', iface], policy=FailurePolicy.SOFT, quiet=True)
    return StepResult(message=f"{len(removed)} interface(s) removed")


def remove_paths(ctx: NodeContext, paths: Iterable[str]) -> int:
    """Remove files or directories; missing ones are skipped."""
    removed = 0
    for path in paths:
        try:
            removed += ctx.fs.remove(path)
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")
    return removed
