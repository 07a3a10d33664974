"""Identifier types for plans and steps."""

from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema


class _Identifier(str):
	"""Opaque, non-empty string identifier compared by value."""

	def __new__(cls, value: str):
		if not isinstance(value, str) or not value:
			raise ValueError(f"{cls.__name__} cannot be empty")
		return super().__new__(cls, value)

	def __repr__(self) -> str:
		return f"{type(self).__name__}({str.__repr__(self)})"

	@classmethod
	def __get_pydantic_core_schema__(
		cls, source: Any, handler: GetCoreSchemaHandler
	) -> core_schema.CoreSchema:
		return core_schema.no_info_after_validator_function(
			cls,
			core_schema.str_schema(),
			serialization=core_schema.plain_serializer_function_ser_schema(str),
		)


class PlanId(_Identifier):
	"""Identifier of a plan."""


class StepId(_Identifier):
	"""Identifier of a step within a plan."""
