from typing import Any


def lower_choice(value: Any) -> Any:
    """Accept enum values in any case: ``CHECKED_IN`` and ``checked_in`` are equal."""

    if isinstance(value, str):
        return value.strip().lower()
    return value
