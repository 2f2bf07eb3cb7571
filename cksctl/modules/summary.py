"""End-of-run summaries printed with rich."""
import logging
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table

from cksctl.modules import tools
from cksctl.modules.node import NodeContext, RunReport, StepOutcome

logger = logging.getLogger(__name__)

CLUSTER_INFO_FILE = "/tmp/cluster-info.txt"

OUTCOME_STYLES = {
    StepOutcome.OK: "[green]ok[/green]",
    StepOutcome.SKIPPED: "[cyan]skipped[/cyan]",
    StepOutcome.WARNED: "[yellow]warned[/yellow]",
    StepOutcome.FAILED: "[red]failed[/red]",
}

CREATE_NEXT_STEPS = [
    "Reload your shell: source ~/.bashrc",
    "Check the cluster: kubectl get nodes",
    "Run a CIS benchmark: sudo kube-bench",
    "Scan a manifest: kubesec scan pod.yaml",
    "Inspect RBAC: kubectl who-can create pods",
    "Start fresh for the next exercise: sudo cksctl reset",
]

RESET_NEXT_STEPS = [
    "Verify the cluster: kubectl get nodes",
    "Start practicing CKS scenarios",
    "Run kube-bench: sudo kube-bench",
    "Reset again anytime: sudo cksctl reset",
]

DESTROY_NEXT_STEPS = [
    "Reboot the system to ensure all changes take effect",
    "Verify no Kubernetes processes are running: ps aux | grep kube",
    "Set the cluster up again anytime: sudo cksctl create",
]

console = Console()


def step_table(report: RunReport) -> Table:
    table = Table(title=f"{report.title} ({report.duration:.0f}s)")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Outcome")
    table.add_column("Time", justify="right")
    table.add_column("Details")
    for index, record in enumerate(report.records, 1):
        table.add_row(
            str(index),
            record.name,
            OUTCOME_STYLES.get(record.outcome, record.outcome.value),
            f"{record.duration:.1f}s" if record.outcome != StepOutcome.SKIPPED else "-",
            record.message,
        )
    return table


def key_value_table(title: str, rows: Dict[str, str]) -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("Item", style="bold")
    table.add_column("Value")
    for key, value in rows.items():
        table.add_row(key, value)
    return table


def _print_next_steps(steps: List[str], out: Console) -> None:
    out.print("\n[bold]Next steps:[/bold]")
    for index, step in enumerate(steps, 1):
        out.print(f"  {index}. {step}")


def _echo_cluster_state(ctx: NodeContext, out: Console) -> None:
    for title, args in (("Cluster nodes", ('get', 'nodes', '-o', 'wide')),
                        ("All pods", ('get', 'pods', '-A'))):
        output = ctx.runner.output(ctx.kubectl(*args))
        out.print(f"\n[bold]{title}:[/bold]")
        out.print(output.rstrip() if output else "  (unavailable)", markup=False, highlight=False)


def save_cluster_info(ctx: NodeContext) -> Optional[str]:
    """Write ``kubectl cluster-info`` to /tmp/cluster-info.txt."""
    info = ctx.runner.output(ctx.kubectl('cluster-info'))
    if not info:
        logger.warning("Could not read cluster-info")
        return None
    ctx.fs.write_text(CLUSTER_INFO_FILE, info)
    return CLUSTER_INFO_FILE


def print_create_summary(ctx: NodeContext, report: RunReport, out: Console = None) -> None:
    out = out or console
    out.print(step_table(report))
    out.print(key_value_table("Installed components", tools.tool_versions(ctx)))
    out.print(key_value_table("Cluster configuration", {
        "Kubernetes version": ctx.versions.kubernetes,
        "Pod network CIDR": ctx.versions.pod_cidr,
        "CNI": f"Calico {ctx.versions.calico}",
        "Max pods per node": str(ctx.settings.kubelet.max_pods),
        "Operator": ctx.session.original_user,
        "Existing cluster kept": "yes" if ctx.session.skip_cluster_init else "no",
    }))
    _echo_cluster_state(ctx, out)
    saved = save_cluster_info(ctx)
    if saved:
        out.print(f"\nCluster info saved to {saved}")
    _print_next_steps(CREATE_NEXT_STEPS, out)
    _print_warnings(report, out)
    out.print("\n🎉 CKS practice cluster is ready")


def print_reset_summary(ctx: NodeContext, report: RunReport, out: Console = None) -> None:
    out = out or console
    out.print(step_table(report))
    out.print(key_value_table("Cluster configuration", {
        "Kubernetes version": ctx.versions.kubernetes,
        "Pod network CIDR": ctx.versions.pod_cidr,
        "CNI": f"Calico {ctx.versions.calico}",
    }))
    _echo_cluster_state(ctx, out)
    out.print("\nKept: Kubernetes binaries, containerd, crictl, etcdctl, kubesec, kube-bench, krew")
    _print_next_steps(RESET_NEXT_STEPS, out)
    _print_warnings(report, out)
    out.print("\n✅ Cluster reset complete")


def print_destroy_summary(ctx: NodeContext, report: RunReport, out: Console = None) -> None:
    out = out or console
    out.print(step_table(report))
    out.print("\nRemoved: Kubernetes cluster, packages, containerd, CLI tools, "
              "configuration, network rules and interfaces")
    out.print("Restored: swap, kernel module and sysctl defaults, shell configuration")
    _print_next_steps(DESTROY_NEXT_STEPS, out)
    _print_warnings(report, out)
    out.print("\n✅ System restored to vanilla state")


def _print_warnings(report: RunReport, out: Console) -> None:
    if not report.warnings:
        return
    out.print(f"\n[yellow]⚠️  {len(report.warnings)} step(s) finished with warnings:[/yellow]")
    for record in report.warnings:
        out.print(f"  - {record.name}: {record.message}", markup=False)
