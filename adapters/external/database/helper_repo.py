from decimal import Decimal
from enum import Enum
from typing import Any


def sanitize_for_mongo(value: Any) -> Any:
    """
    Recursively sanitize values so they are acceptable by MongoDB/BSON.

    - Decimal amounts are stored as strings (no float rounding)
    - enums are stored by value
    - ints wider than int64 become strings
    - dicts, lists and tuples are handled recursively
    """
    if isinstance(value, bool) or value is None:
        return value

    if isinstance(value, Decimal):
        return str(value)

    if isinstance(value, Enum):
        return sanitize_for_mongo(value.value)

    if isinstance(value, int):
        min_int64 = -(2**63)
        max_int64 = 2**63 - 1
        if min_int64 <= value <= max_int64:
            return value
        return str(value)

    if isinstance(value, dict):
        return {k: sanitize_for_mongo(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [sanitize_for_mongo(v) for v in value]

    return value
