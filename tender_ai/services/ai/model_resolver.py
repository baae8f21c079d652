"""Model and prompt resolution with override precedence.

Precedence for both models and prompts is: project override, then the
user's default, then the system default. A resolved model id that is not
in the registry, or whose kind (embedding or generation) does not match the
operation, falls back to the system default for the operation.
"""

from typing import Mapping, Optional, Union

from tender_ai.schemas.enums import Operation
from tender_ai.services.ai.model_registry import DEFAULT_MODELS, supports_operation
from tender_ai.services.ai.prompts import PROMPTS
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

OperationLike = Union[Operation, str]


def _lookup(overrides: Optional[Mapping[str, str]], key: str) -> Optional[str]:
    if not overrides:
        return None
    value = overrides.get(key)
    return value or None


def resolve_model(
    operation: OperationLike,
    project_overrides: Optional[Mapping[str, str]] = None,
    user_defaults: Optional[Mapping[str, str]] = None,
) -> str:
    """Pick the model id for an operation."""
    op = Operation(operation)
    candidate = (
        _lookup(project_overrides, op.value)
        or _lookup(user_defaults, op.value)
        or DEFAULT_MODELS[op]
    )
    if not supports_operation(candidate, op):
        LOGGER.warning(
            f"Model '{candidate}' unusable for {op.value}, using default",
            extra={"operation": op.value, "default": DEFAULT_MODELS[op]},
        )
        return DEFAULT_MODELS[op]
    return candidate


def resolve_prompt(
    operation: OperationLike,
    project_overrides: Optional[Mapping[str, str]] = None,
    user_defaults: Optional[Mapping[str, str]] = None,
) -> str:
    """Pick the system prompt for an operation."""
    op = Operation(operation)
    return (
        _lookup(project_overrides, op.value)
        or _lookup(user_defaults, op.value)
        or PROMPTS[op]
    )
