"""
Structural schemas for plan and step payloads.

The schemas are plain, statically declared dictionaries in a JSON-schema
like dialect. A single generic function walks a payload against a schema
and collects every violation. This stage only checks shape: required
fields, types, enumerated values and nesting. Whether a dependency target
exists or a title is blank is decided later by the business rules.

Supported keywords: type, required, properties, additionalProperties,
enum, items, minLength, minimum, maxItems, format (date-time) and
discriminator/variants for tagged unions such as step actions.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from .errors import StructuralValidationError, ValidationIssue
from .models import (
	SCHEMA_VERSION,
	DiagramType,
	DurationUnit,
	PlanStatus,
	PlanType,
	ReviewDecision,
	StepKind,
	StepStatus,
)

logger = logging.getLogger(__name__)

MAX_STEPS = 100
MAX_CONTEXT_FILES = 200


def _values(enum_cls) -> list[str]:
	return [e.value for e in enum_cls]


STRING = {"type": "string"}
STRING_LIST = {"type": "array", "items": STRING}
TIMESTAMP = {"type": "string", "format": "date-time"}

DURATION_SCHEMA = {
	"type": "object",
	"required": ["value", "unit"],
	"properties": {
		"value": {"type": "number", "minimum": 0},
		"unit": {"type": "string", "enum": _values(DurationUnit)},
	},
	"additionalProperties": False,
}

VALIDATION_CRITERIA_SCHEMA = {
	"type": "object",
	"required": ["criteria"],
	"properties": {
		"criteria": STRING_LIST,
		"automatedTests": STRING_LIST,
	},
	"additionalProperties": False,
}

DIAGRAM_SCHEMA = {
	"type": "object",
	"required": ["type", "content"],
	"properties": {
		"type": {"type": "string", "enum": _values(DiagramType)},
		"content": {"type": "string", "minLength": 1},
		"title": STRING,
		"description": STRING,
	},
	"additionalProperties": False,
}

COMMENT_SCHEMA = {
	"type": "object",
	"required": ["id", "content", "createdAt"],
	"properties": {
		"id": {"type": "string", "minLength": 1},
		"content": STRING,
		"author": STRING,
		"createdAt": TIMESTAMP,
		"updatedAt": TIMESTAMP,
	},
	"additionalProperties": False,
}

COMMENT_INPUT_SCHEMA = {
	"type": "object",
	"required": ["content"],
	"properties": {
		"content": {"type": "string", "minLength": 1},
		"author": STRING,
	},
	"additionalProperties": False,
}

REVIEW_STATUS_SCHEMA = {
	"type": "object",
	"required": ["decision"],
	"properties": {
		"decision": {"type": "string", "enum": _values(ReviewDecision)},
		"timestamp": TIMESTAMP,
		"reviewer": STRING,
	},
	"additionalProperties": False,
}


CONTEXT_FILE_SCHEMA = {
	"type": "object",
	"required": ["path"],
	"properties": {
		"path": {"type": "string", "minLength": 1},
		"title": STRING,
		"summary": STRING,
		"lastModified": TIMESTAMP,
	},
	"additionalProperties": False,
}

CONTEXT_SCHEMA = {
	"type": "object",
	"required": ["files"],
	"properties": {
		"files": {"type": "array", "items": CONTEXT_FILE_SCHEMA, "maxItems": MAX_CONTEXT_FILES},
	},
	"additionalProperties": False,
}


def _action(required: list[str], **properties: dict) -> dict:
	return {
		"type": "object",
		"required": ["type"] + required,
		"properties": {"type": STRING, "description": STRING, "payload": {"type": "object"}, **properties},
		"additionalProperties": False,
	}


_CREATE_FILE = _action(["filePath"], filePath=STRING, content=STRING)
_EDIT_FILE = _action(
	["filePath"],
	filePath=STRING,
	before=STRING,
	after=STRING,
	lineNumbers={
		"type": "object",
		"required": ["start", "end"],
		"properties": {"start": {"type": "integer", "minimum": 1}, "end": {"type": "integer", "minimum": 1}},
		"additionalProperties": False,
	},
)
_DELETE_FILE = _action(["filePath"], filePath=STRING, reason=STRING)
_RUN_COMMAND = _action(["command"], command=STRING, workingDirectory=STRING, expectedOutput=STRING)
_TEST = _action([], testCommand=STRING, testFiles=STRING_LIST, coverage={"type": "number", "minimum": 0})
_REVIEW = _action([], checklistItems=STRING_LIST, reviewers=STRING_LIST)
_DOCUMENTATION = _action(
	[],
	sections=STRING_LIST,
	format={"type": "string", "enum": ["markdown", "jsdoc", "openapi", "readme"]},
	filePath=STRING,
)
_CUSTOM = _action(["description"])

# Aliases share the schema of their canonical action type
ACTION_SCHEMAS: dict[str, dict] = {
	"create_file": _CREATE_FILE,
	"create_directory": _CREATE_FILE,
	"edit_file": _EDIT_FILE,
	"delete_file": _DELETE_FILE,
	"run_command": _RUN_COMMAND,
	"terminal": _RUN_COMMAND,
	"test": _TEST,
	"manual_test": _TEST,
	"review": _REVIEW,
	"code_review": _REVIEW,
	"documentation": _DOCUMENTATION,
	"custom": _CUSTOM,
}

ACTION_SCHEMA = {
	"type": "object",
	"required": ["type"],
	"discriminator": "type",
	"variants": ACTION_SCHEMAS,
}

_STEP_PROPERTIES = {
	"id": {"type": "string", "minLength": 1},
	"title": {"type": "string", "minLength": 1},
	"description": STRING,
	"kind": {"type": "string", "enum": _values(StepKind)},
	"status": {"type": "string", "enum": _values(StepStatus)},
	"dependsOn": {"type": "array", "items": {"type": "string", "minLength": 1}},
	"estimatedDuration": DURATION_SCHEMA,
	"actions": {"type": "array", "items": ACTION_SCHEMA},
	"validation": VALIDATION_CRITERIA_SCHEMA,
	"comments": {"type": "array", "items": COMMENT_SCHEMA},
	"reviewStatus": REVIEW_STATUS_SCHEMA,
	"diagram": DIAGRAM_SCHEMA,
}

STEP_SCHEMA = {
	"type": "object",
	"required": ["id", "title", "description", "kind"],
	"properties": _STEP_PROPERTIES,
	"additionalProperties": False,
}

# Comments and review status have dedicated operations
STEP_UPDATE_SCHEMA = {
	"type": "object",
	"required": [],
	"properties": {k: v for k, v in _STEP_PROPERTIES.items() if k not in ("comments", "reviewStatus")},
	"additionalProperties": False,
}

_METADATA_PROPERTIES = {
	"title": STRING,
	"description": STRING,
	"author": STRING,
	"tags": STRING_LIST,
}

_DETAILS_PROPERTIES = {
	"objective": STRING,
	"scope": STRING,
	"constraints": STRING_LIST,
	"assumptions": STRING_LIST,
	"successCriteria": STRING_LIST,
	"diagrams": {"type": "array", "items": DIAGRAM_SCHEMA},
}

METADATA_PATCH_SCHEMA = {"type": "object", "properties": _METADATA_PROPERTIES, "additionalProperties": False}
DETAILS_PATCH_SCHEMA = {"type": "object", "properties": _DETAILS_PROPERTIES, "additionalProperties": False}

DRAFT_SCHEMA = {
	"type": "object",
	"required": ["planType", "metadata", "plan"],
	"properties": {
		"planType": {"type": "string", "enum": _values(PlanType)},
		"metadata": {
			"type": "object",
			"required": ["title", "description"],
			"properties": _METADATA_PROPERTIES,
			"additionalProperties": False,
		},
		"plan": {
			"type": "object",
			"required": ["objective"],
			"properties": _DETAILS_PROPERTIES,
			"additionalProperties": False,
		},
	},
	"additionalProperties": False,
}

PLAN_DOCUMENT_SCHEMA = {
	"type": "object",
	"required": ["planType", "metadata", "plan", "steps"],
	"properties": {
		"id": {"type": "string", "minLength": 1},
		"schemaVersion": {"type": "string", "enum": [SCHEMA_VERSION]},
		"planType": {"type": "string", "enum": _values(PlanType)},
		"status": {"type": "string", "enum": _values(PlanStatus)},
		"metadata": {
			"type": "object",
			"required": ["title", "description"],
			"properties": {
				**_METADATA_PROPERTIES,
				"revision": {"type": "integer", "minimum": 0},
				"createdAt": TIMESTAMP,
				"updatedAt": TIMESTAMP,
			},
			"additionalProperties": False,
		},
		"plan": {
			"type": "object",
			"required": ["objective"],
			"properties": _DETAILS_PROPERTIES,
			"additionalProperties": False,
		},
		"steps": {"type": "array", "items": STEP_SCHEMA, "maxItems": MAX_STEPS},
		"comments": {"type": "array", "items": COMMENT_SCHEMA},
		"revision": {"type": "integer", "minimum": 0},
		"createdAt": TIMESTAMP,
		"updatedAt": TIMESTAMP,
	},
	"additionalProperties": False,
}


def _type_name(value: Any) -> str:
	if value is None:
		return "null"
	if isinstance(value, bool):
		return "boolean"
	if isinstance(value, int):
		return "integer"
	if isinstance(value, float):
		return "number"
	if isinstance(value, str):
		return "string"
	if isinstance(value, list):
		return "array"
	if isinstance(value, dict):
		return "object"
	return type(value).__name__


def _check_type(value: Any, expected: str) -> bool:
	"""Check if a value matches the expected JSON schema type."""
	actual = _type_name(value)
	if expected == "number":
		return actual in ("integer", "number")
	return actual == expected


def _issue(path: str, message: str, code: str, expected: Any = None, actual: Any = None) -> ValidationIssue:
	return ValidationIssue(
		path=path or "/",
		message=message,
		error_type="schema",
		code=code,
		expected=expected,
		actual=actual,
	)


def validate_shape(value: Any, schema: dict, path: str = "") -> list[ValidationIssue]:
	"""
	Validate a value against a schema, collecting every violation.

	Args:
		value: Decoded JSON value
		schema: Schema dictionary
		path: JSON-pointer style location of value

	Returns:
		List of schema issues (empty when valid)
	"""
	expected_type = schema.get("type")
	if expected_type and not _check_type(value, expected_type):
		return [_issue(
			path,
			f"Expected {expected_type}, got {_type_name(value)}",
			"invalid_type",
			expected=expected_type,
			actual=_type_name(value),
		)]

	issues: list[ValidationIssue] = []

	if "enum" in schema and value not in schema["enum"]:
		issues.append(_issue(
			path,
			f"Must be one of: {', '.join(map(str, schema['enum']))}",
			"invalid_enum",
			expected=list(schema["enum"]),
			actual=value,
		))

	if isinstance(value, str):
		if len(value) < schema.get("minLength", 0):
			issues.append(_issue(path, "Must not be empty", "too_short", actual=value))
		if schema.get("format") == "date-time" and not _is_timestamp(value):
			issues.append(_issue(path, "Must be an ISO-8601 date-time", "invalid_format", actual=value))

	if _type_name(value) in ("integer", "number") and "minimum" in schema and value < schema["minimum"]:
		issues.append(_issue(
			path,
			f"Must be >= {schema['minimum']}",
			"too_small",
			expected=schema["minimum"],
			actual=value,
		))

	if isinstance(value, list):
		max_items = schema.get("maxItems")
		if max_items is not None and len(value) > max_items:
			issues.append(_issue(
				path,
				f"Must contain at most {max_items} items",
				"too_many",
				expected=max_items,
				actual=len(value),
			))
		item_schema = schema.get("items")
		if item_schema:
			for i, item in enumerate(value):
				issues.extend(validate_shape(item, item_schema, f"{path}/{i}"))

	if isinstance(value, dict):
		issues.extend(_validate_object(value, schema, path))

	return issues


def _validate_object(value: dict, schema: dict, path: str) -> list[ValidationIssue]:
	discriminator = schema.get("discriminator")
	if discriminator:
		tag = value.get(discriminator)
		if tag is None:
			return [_issue(f"{path}/{discriminator}", f"Missing required field: {discriminator}", "required")]
		variants = schema["variants"]
		if tag not in variants:
			return [_issue(
				f"{path}/{discriminator}",
				f"Unknown {discriminator}: {tag}",
				"invalid_enum",
				expected=sorted(variants),
				actual=tag,
			)]
		return validate_shape(value, variants[tag], path)

	issues = []
	properties = schema.get("properties", {})

	for key in schema.get("required", []):
		if value.get(key) is None:
			issues.append(_issue(f"{path}/{key}", f"Missing required field: {key}", "required"))

	for key, item in value.items():
		prop_schema = properties.get(key)
		if prop_schema is None:
			if schema.get("additionalProperties", True) is False:
				issues.append(_issue(f"{path}/{key}", f"Unknown field: {key}", "unknown_field", actual=key))
			continue
		# Optional fields may be sent as null
		if item is None:
			continue
		issues.extend(validate_shape(item, prop_schema, f"{path}/{key}"))

	return issues


def _is_timestamp(value: str) -> bool:
	try:
		datetime.fromisoformat(value.replace("Z", "+00:00"))
	except ValueError:
		return False
	return True


def require_valid(message: str, issues: list[ValidationIssue]) -> None:
	"""Raise a StructuralValidationError if any issue was collected."""
	if issues:
		logger.debug(f"{message}: {len(issues)} issue(s)")
		raise StructuralValidationError(message, issues)


class StructuralValidator:
	"""Shape validation for every payload the lifecycle operations accept."""

	def validate_step(self, payload: Any, path: str = "/step") -> list[ValidationIssue]:
		return validate_shape(payload, STEP_SCHEMA, path)

	def validate_steps(self, payloads: list[Any]) -> list[ValidationIssue]:
		"""Validate a full proposed step list (existing steps plus candidates)."""
		return validate_shape(payloads, {"type": "array", "items": STEP_SCHEMA, "maxItems": MAX_STEPS}, "/steps")

	def validate_step_update(self, updates: Any) -> list[ValidationIssue]:
		return validate_shape(updates, STEP_UPDATE_SCHEMA, "/updates")

	def validate_draft(self, payload: Any) -> list[ValidationIssue]:
		return validate_shape(payload, DRAFT_SCHEMA)

	def validate_metadata_patch(self, patch: Any) -> list[ValidationIssue]:
		return validate_shape(patch, METADATA_PATCH_SCHEMA, "/metadata")

	def validate_details_patch(self, patch: Any) -> list[ValidationIssue]:
		return validate_shape(patch, DETAILS_PATCH_SCHEMA, "/plan")

	def validate_comment(self, content: Any, author: Optional[str] = None) -> list[ValidationIssue]:
		payload: dict[str, Any] = {"content": content}
		if author is not None:
			payload["author"] = author
		issues = validate_shape(payload, COMMENT_INPUT_SCHEMA)
		if not issues and not content.strip():
			issues.append(_issue("/content", "Comment content cannot be blank", "too_short", actual=content))
		return issues

	def validate_review(self, decision: Any, reviewer: Any = None) -> list[ValidationIssue]:
		payload: dict[str, Any] = {"decision": decision}
		if reviewer is not None:
			payload["reviewer"] = reviewer
		return validate_shape(payload, REVIEW_STATUS_SCHEMA)

	def validate_document(self, document: Any) -> list[ValidationIssue]:
		return validate_shape(document, PLAN_DOCUMENT_SCHEMA)

	def validate_context(self, payload: Any) -> list[ValidationIssue]:
		"""Shape of a context payload; every file path must be absolute."""
		issues = validate_shape(payload, CONTEXT_SCHEMA)
		if issues:
			return issues
		for i, entry in enumerate(payload["files"]):
			if not entry["path"].startswith("/"):
				issues.append(_issue(
					f"/files/{i}/path",
					"File path must be absolute",
					"invalid_format",
					actual=entry["path"],
				))
		return issues


ACTION_TYPE_DOCS = [
	{
		"type": "create_file",
		"description": "Create a new file with optional content",
		"example": {
			"type": "create_file",
			"filePath": "src/components/button.py",
			"content": "class Button: ...",
			"description": "Create reusable Button component",
		},
	},
	{
		"type": "edit_file",
		"description": "Modify an existing file with before/after snippets",
		"example": {
			"type": "edit_file",
			"filePath": "src/utils/auth.py",
			"before": "def login(user, password):",
			"after": "async def login(user, password):",
			"lineNumbers": {"start": 1, "end": 3},
		},
	},
	{
		"type": "delete_file",
		"description": "Remove a file from the project",
		"example": {"type": "delete_file", "filePath": "src/legacy/old.py", "reason": "Replaced"},
	},
	{
		"type": "run_command",
		"description": "Execute a shell command",
		"example": {"type": "run_command", "command": "pip install httpx", "workingDirectory": "."},
	},
	{
		"type": "test",
		"description": "Run tests with coverage tracking",
		"example": {"type": "test", "testCommand": "pytest --cov", "testFiles": ["tests/test_auth.py"], "coverage": 80},
	},
	{
		"type": "review",
		"description": "Code review with checklist and reviewers",
		"example": {"type": "review", "checklistItems": ["Tests pass"], "reviewers": ["@tech-lead"]},
	},
	{
		"type": "documentation",
		"description": "Create or update documentation",
		"example": {"type": "documentation", "sections": ["Usage"], "format": "markdown", "filePath": "README.md"},
	},
	{
		"type": "custom",
		"description": "Custom action with a free-form payload",
		"example": {"type": "custom", "description": "Deploy to staging", "payload": {"environment": "staging"}},
	},
]


def get_format() -> dict[str, Any]:
	"""Static description of the plan format accepted by the validators."""
	actions = []
	for doc in ACTION_TYPE_DOCS:
		schema = ACTION_SCHEMAS[doc["type"]]
		actions.append({
			**doc,
			"requiredFields": list(schema["required"]),
			"optionalFields": [k for k in schema["properties"] if k not in schema["required"]],
			"aliases": sorted(
				alias for alias, s in ACTION_SCHEMAS.items() if s is schema and alias != doc["type"]
			),
		})

	return {
		"version": SCHEMA_VERSION,
		"schemas": {
			"plan": PLAN_DOCUMENT_SCHEMA,
			"draft": DRAFT_SCHEMA,
			"step": STEP_SCHEMA,
			"stepUpdate": STEP_UPDATE_SCHEMA,
		},
		"constraints": {
			"maxSteps": MAX_STEPS,
			"supportedPlanTypes": _values(PlanType),
			"supportedPlanStatuses": _values(PlanStatus),
			"supportedStepKinds": _values(StepKind),
			"supportedStepStatuses": _values(StepStatus),
			"supportedReviewDecisions": _values(ReviewDecision),
			"supportedDiagramTypes": _values(DiagramType),
		},
		"actionTypes": actions,
	}


def get_context_format() -> dict[str, Any]:
	"""Static description of the plan context payload."""
	return {
		"version": SCHEMA_VERSION,
		"schema": CONTEXT_SCHEMA,
		"constraints": {
			"maxFiles": MAX_CONTEXT_FILES,
			"absolutePaths": True,
			"uniquePaths": True,
		},
		"example": {
			"files": [
				{
					"path": "/home/dev/app/src/auth/session.py",
					"title": "Session handling",
					"summary": "Issues and refreshes session cookies",
					"lastModified": "2024-01-15T10:30:00Z",
				},
			],
		},
	}
