from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Type, Union

from railfare.src import schemas
from railfare.src.constants import FARE_DECIMAL_PLACES
from railfare.src.exceptions import APIException
from railfare.src.interval import Number, toDecimal


QUANTUM = Decimal(1).scaleb(-FARE_DECIMAL_PLACES)


def makeExceptionResponses(
    exceptions: List[Union[APIException, Type[APIException]]],
) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation by fusing multiple APIException instances.

    Args:
        exceptions (List[APIException]): List of exceptions. Classes whose
            constructor takes no argument may be passed without instantiating them.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        if isinstance(exception, type):
            exception = exception()
        status_code = exception.status_code
        example_key = type(exception).__name__
        example_value = {
            "summary": str(exception.headers),
            "value": {"detail": exception.detail},
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Each enum member is formatted as "<NAME>: <VALUE>".

    Example:
        >>> from enum import IntEnum
        >>> class BerthKind(IntEnum):
        ...     UPPER = 1
        ...     LOWER = 2
        >>> enumStr(BerthKind)
        'UPPER: 1, LOWER: 2'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def roundAmount(value: Optional[Number]) -> Optional[Decimal]:
    """
    Round a distance or a money amount to the stored precision.

    Rounding is half-up, so 0.005 becomes 0.01. `None` is passed through.

    Example:
        >>> roundAmount(12.345)
        Decimal('12.35')
    """
    if value is None:
        return None
    return toDecimal(value).quantize(QUANTUM, rounding=ROUND_HALF_UP)
