"""
Base schemas with standardized field types for consistent API responses.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import core_schema

T = TypeVar("T")

CENTS = Decimal("0.01")


def format_money(value: Any) -> str:
    """Render an amount with exactly two fractional digits."""
    return str(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


class StandardizedModel(BaseModel):
    """Base model with standardized JSON encoding"""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


class StrictRequestModel(BaseModel):
    """Request body base: unknown keys are a 400 and strings arrive stripped."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, str_strip_whitespace=True)


class Money(Decimal):
    """Money field that always serializes as a 2-decimal string"""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def validate_money(value: Any) -> Decimal:
            if isinstance(value, Decimal):
                return value
            if isinstance(value, (int, float, str)):
                return Decimal(str(value))
            raise ValueError(f"Cannot convert {type(value)} to Money")

        return core_schema.no_info_after_validator_function(
            validate_money,
            core_schema.union_schema(
                [
                    core_schema.is_instance_schema(Decimal),
                    core_schema.int_schema(),
                    core_schema.float_schema(),
                    core_schema.str_schema(),
                ]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                format_money,
                info_arg=False,
                return_schema=core_schema.str_schema(),
            ),
        )


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every endpoint: ``{success: true, data}``."""

    success: bool = Field(default=True, description="Operation success status")
    data: Optional[T] = Field(default=None, description="Response payload")


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Failure envelope rendered by the global error handlers."""

    success: bool = False
    error: ErrorBody
