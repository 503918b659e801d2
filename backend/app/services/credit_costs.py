"""Static credit cost table.

Costs are deploy-time constants keyed by AIOperation. Callers never supply
a cost; it is always resolved here so a route cannot under-bill itself.
"""

from types import MappingProxyType

from app.core.errors import UnknownOperationError
from app.providers.llm.base import AIOperation

CREDIT_COSTS: MappingProxyType[AIOperation, int] = MappingProxyType(
    {
        AIOperation.CHAT: 1,
        AIOperation.OCR: 1,
        AIOperation.SOLVE_MATH: 1,
        AIOperation.GENERATE_SOLUTION: 2,
        AIOperation.VOICE_ANALYZE: 1,
        AIOperation.TEACHER_FEEDBACK: 1,
    }
)


def resolve_operation(operation: AIOperation | str) -> AIOperation:
    """Coerce an operation value to AIOperation.

    Args:
        operation: AIOperation member or its string value (e.g. "solve-math").

    Returns:
        The matching AIOperation.

    Raises:
        UnknownOperationError: If the value is not a known operation.
    """
    if isinstance(operation, AIOperation):
        return operation
    try:
        return AIOperation(operation)
    except ValueError:
        raise UnknownOperationError(operation) from None


def resolve_cost(operation: AIOperation | str) -> int:
    """Return the credit cost of an operation.

    Raises:
        UnknownOperationError: If the operation has no cost entry.
    """
    resolved = resolve_operation(operation)
    cost = CREDIT_COSTS.get(resolved)
    if cost is None:
        raise UnknownOperationError(resolved.value)
    return cost
