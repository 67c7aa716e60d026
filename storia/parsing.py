"""Shared parsing helpers for config, environment, and payload value normalization."""

from __future__ import annotations

from collections.abc import Iterable


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_positive_int(value: object, field_name: str) -> int:
    """Parse a strictly positive integer from an int or textual token.

    Raises:
        ValueError: If the value is a boolean, non-numeric, or not positive.
    """

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a positive integer.")
    if isinstance(value, int):
        parsed = value
    else:
        normalized = normalize_optional_string(value)
        if normalized is None:
            raise ValueError(f"`{field_name}` must be a positive integer.")
        try:
            parsed = int(normalized)
        except ValueError as exc:
            raise ValueError(f"`{field_name}` must be a positive integer.") from exc
    if parsed <= 0:
        raise ValueError(f"`{field_name}` must be a positive integer.")
    return parsed


def parse_non_negative_float(value: object, field_name: str) -> float:
    """Parse a float that must be zero or greater."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"`{field_name}` must be a non-negative number.") from exc
    if parsed < 0.0:
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    return parsed


def parse_ratio(value: object, field_name: str) -> float:
    """Parse a ratio in the closed interval `[0, 1]`."""

    parsed = parse_non_negative_float(value, field_name)
    if parsed > 1.0:
        raise ValueError(f"`{field_name}` must be between 0 and 1.")
    return parsed


def parse_choice(value: object, field_name: str, choices: Iterable[str]) -> str:
    """Parse a case-insensitive token that must be one of `choices`."""

    allowed = sorted(choices)
    normalized = normalize_optional_string(value)
    token = normalized.lower() if normalized is not None else ""
    if token not in allowed:
        raise ValueError(
            f"`{field_name}` must be one of: {', '.join(allowed)} (got `{value}`)."
        )
    return token
