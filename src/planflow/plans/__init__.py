"""Plan aggregate, validation pipeline and versioned storage."""

from .errors import (
	BusinessRuleError,
	CommentNotFoundError,
	ContextNotFoundError,
	CyclicDependencyError,
	NotFoundError,
	OptimisticLockError,
	PlanflowError,
	PlanNotFoundError,
	StepNotFoundError,
	StructuralValidationError,
	ValidationIssue,
)
from .ids import PlanId, StepId
from .lifecycle import PlanLifecycle
from .models import (
	Comment,
	ContextFile,
	Plan,
	PlanContext,
	PlanDetails,
	PlanMetadata,
	PlanStatus,
	PlanType,
	ReviewDecision,
	ReviewStatus,
	Step,
	StepKind,
	StepStatus,
)
from .store import PlanFilters, PlanStore

__all__ = [
	"BusinessRuleError",
	"Comment",
	"CommentNotFoundError",
	"ContextFile",
	"ContextNotFoundError",
	"CyclicDependencyError",
	"NotFoundError",
	"OptimisticLockError",
	"Plan",
	"PlanDetails",
	"PlanFilters",
	"PlanContext",
	"PlanId",
	"PlanLifecycle",
	"PlanMetadata",
	"PlanNotFoundError",
	"PlanStatus",
	"PlanStore",
	"PlanType",
	"PlanflowError",
	"ReviewDecision",
	"ReviewStatus",
	"Step",
	"StepId",
	"StepKind",
	"StepNotFoundError",
	"StepStatus",
	"StructuralValidationError",
	"ValidationIssue",
]
