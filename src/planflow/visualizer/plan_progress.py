"""Rich views for plan progress visualization."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..plans import graph
from ..plans.errors import CyclicDependencyError
from ..plans.models import Plan, PlanStatus, StepStatus

STATUS_ICONS = {
	StepStatus.PENDING: "[dim][ ][/dim]",
	StepStatus.IN_PROGRESS: "[yellow][~][/yellow]",
	StepStatus.COMPLETED: "[green][x][/green]",
	StepStatus.FAILED: "[red][!][/red]",
	StepStatus.BLOCKED: "[red][!][/red]",
	StepStatus.SKIPPED: "[dim][-][/dim]",
}

PLAN_STATUS_STYLES = {
	PlanStatus.DRAFT: "dim",
	PlanStatus.ACTIVE: "yellow",
	PlanStatus.COMPLETED: "green",
	PlanStatus.ARCHIVED: "dim",
}


def render_plan_progress(plan: Plan, console: Optional[Console] = None) -> None:
	"""Render a plan as a Rich Tree of steps in execution order."""
	console = console or Console()

	progress = plan.get_progress()
	pct = progress["percent_complete"]

	tree = Tree(
		f"[bold]{plan.metadata.title}[/bold]  "
		f"[dim]({progress['completed_steps']}/{progress['total_steps']} steps, {pct:.0f}%)[/dim]"
	)

	try:
		ordered = graph.topological_order(plan.steps)
	except CyclicDependencyError:
		ordered = plan.steps

	ready = {str(s.id) for s in graph.compute_executable(plan.steps)}
	for step in ordered:
		icon = STATUS_ICONS.get(step.status, "[ ]")
		label = f"{icon} [bold]{step.id}[/bold] {step.title} [dim]({step.kind.value})[/dim]"
		if str(step.id) in ready and step.status == StepStatus.PENDING:
			label += " [cyan]ready[/cyan]"
		branch = tree.add(label)
		if step.depends_on:
			branch.add(f"[dim]after {', '.join(step.depends_on)}[/dim]")

	console.print(tree)


def render_plan_summary(plan: Plan, console: Optional[Console] = None) -> None:
	"""Render a summary panel for a plan."""
	console = console or Console()

	progress = plan.get_progress()
	pct = progress["percent_complete"]

	lines = []
	lines.append(f"[bold]Title:[/bold] {plan.metadata.title}")
	lines.append(f"[bold]Objective:[/bold] {plan.details.objective}")
	lines.append(f"[bold]Type:[/bold] {plan.plan_type.value}")
	lines.append(f"[bold]Status:[/bold] {plan.status.value}")
	lines.append(f"[bold]Revision:[/bold] {plan.revision}")
	if plan.metadata.author:
		lines.append(f"[bold]Author:[/bold] {plan.metadata.author}")
	lines.append("")
	lines.append(f"[bold]Progress:[/bold] {progress['completed_steps']}/{progress['total_steps']} steps ({pct:.0f}%)")
	lines.append(
		f"[bold]Open:[/bold] {progress['in_progress_steps']} in progress, "
		f"{progress['pending_steps']} pending, {progress['blocked_steps'] + progress['failed_steps']} blocked/failed"
	)
	if progress["estimated_hours"] is not None:
		lines.append(f"[bold]Estimate:[/bold] {progress['estimated_hours']}h")

	if plan.details.success_criteria:
		lines.append("")
		lines.append("[bold]Success Criteria:[/bold]")
		for c in plan.details.success_criteria:
			lines.append(f"  - {c}")

	if plan.details.constraints:
		lines.append("")
		lines.append("[bold]Constraints:[/bold]")
		for c in plan.details.constraints:
			lines.append(f"  - {c}")

	if plan.comments:
		lines.append("")
		lines.append(f"[bold]Comments:[/bold] {len(plan.comments)}")
		for comment in plan.comments[-3:]:
			lines.append(f"  - {comment.content}")

	console.print(Panel("\n".join(lines), title=f"Plan: {plan.id}", border_style="cyan"))


def render_plan_list(plans: list[Plan], console: Optional[Console] = None) -> None:
	"""Render a table of plans."""
	console = console or Console()

	if not plans:
		console.print("[dim]No plans found.[/dim]")
		return

	table = Table(title="Plans")
	table.add_column("ID", style="cyan")
	table.add_column("Title")
	table.add_column("Type")
	table.add_column("Status")
	table.add_column("Steps", justify="right")
	table.add_column("Rev", justify="right")
	table.add_column("Created")

	for plan in plans:
		style = PLAN_STATUS_STYLES.get(plan.status, "")
		progress = plan.get_progress()
		table.add_row(
			str(plan.id),
			plan.metadata.title,
			plan.plan_type.value,
			f"[{style}]{plan.status.value}[/{style}]",
			f"{progress['completed_steps']}/{progress['total_steps']}",
			str(plan.revision),
			plan.created_at.strftime("%Y-%m-%d %H:%M"),
		)

	console.print(table)
