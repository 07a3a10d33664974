"""Pluggable diagram validation."""

from typing import Optional, Protocol

from .errors import ValidationIssue

DIAGRAM_MARKERS: dict[str, tuple[str, ...]] = {
	"flowchart": ("flowchart", "graph"),
	"sequence": ("sequenceDiagram",),
	"class": ("classDiagram",),
	"er": ("erDiagram",),
	"gantt": ("gantt",),
	"state": ("stateDiagram", "stateDiagram-v2"),
}


class DiagramValidator(Protocol):
	"""Checks diagram source text; returns an error message or None."""

	def validate(self, diagram_type: str, content: str) -> Optional[str]:
		...


class MarkerDiagramValidator:
	"""
	Minimal validator: content must start with the keyword of its type.

	Full syntax checking belongs to an external renderer; plug one in by
	passing any object with a compatible validate() to PlanLifecycle.
	"""

	def validate(self, diagram_type: str, content: str) -> Optional[str]:
		markers = DIAGRAM_MARKERS.get(diagram_type)
		if markers is None:
			return f"Unknown diagram type: {diagram_type}"
		if not content.strip().startswith(markers):
			return f"Diagram content must start with one of: {', '.join(markers)}"
		return None


def check_diagram(
	validator: DiagramValidator,
	diagram: Optional[dict],
	path: str,
) -> list[ValidationIssue]:
	"""Run the validator on a wire-format diagram dict."""
	if not diagram:
		return []
	error = validator.validate(diagram["type"], diagram["content"])
	if error is None:
		return []
	return [ValidationIssue(
		path=f"{path}/content",
		message=error,
		error_type="format",
		code="invalid_diagram",
		actual=diagram["content"],
	)]
