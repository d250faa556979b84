"""Input validation decorators and utilities for parameter bounds checking."""
from __future__ import annotations
import functools
import inspect
import math
from typing import Any, Callable, Dict, Optional


class ValidationError(ValueError):
    """Raised when parameter validation fails."""
    pass


def validate_positive(value: float, name: str, allow_zero: bool = False) -> float:
    """Validate that a value is positive (optionally allowing zero).

    Args:
        value: Value to validate.
        name: Parameter name for error message.
        allow_zero: If True, allow zero values.

    Returns:
        The validated value.

    Raises:
        ValidationError: If value is not positive or not finite.
    """
    try:
        val = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(val):
        raise ValidationError(f"{name} must be finite, got {val}")
    if allow_zero:
        if val < 0:
            raise ValidationError(f"{name} must be non-negative, got {val}")
    else:
        if val <= 0:
            raise ValidationError(f"{name} must be positive, got {val}")
    return val


def validate_range(value: float, name: str, min_val: Optional[float] = None,
                   max_val: Optional[float] = None, inclusive: bool = True) -> float:
    """Validate that a value is within a specified range.

    Args:
        value: Value to validate.
        name: Parameter name for error message.
        min_val: Minimum allowed value (None for no minimum).
        max_val: Maximum allowed value (None for no maximum).
        inclusive: If True, endpoints are included in range.

    Returns:
        The validated value.

    Raises:
        ValidationError: If value is outside the specified range.
    """
    val = float(value)

    if min_val is not None:
        if inclusive and val < min_val:
            raise ValidationError(f"{name} must be >= {min_val}, got {val}")
        elif not inclusive and val <= min_val:
            raise ValidationError(f"{name} must be > {min_val}, got {val}")

    if max_val is not None:
        if inclusive and val > max_val:
            raise ValidationError(f"{name} must be <= {max_val}, got {val}")
        elif not inclusive and val >= max_val:
            raise ValidationError(f"{name} must be < {max_val}, got {val}")

    return val


def validate_probability(value: float, name: str) -> float:
    """Validate that a value is a valid probability (0 <= x <= 1)."""
    return validate_range(value, name, min_val=0.0, max_val=1.0, inclusive=True)


def validate_params(**validators: Callable[[Any], Any]) -> Callable:
    """Decorator to validate function parameters.

    Args:
        validators: Mapping of parameter names to validation functions.

    Example:
        @validate_params(
            size=validate_positive_param('size'),
        )
        def open_position(self, asset, side, size):
            ...
    """
    def decorator(func: Callable) -> Callable:
        sig = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            bound_args = sig.bind(*args, **kwargs)
            bound_args.apply_defaults()

            for param_name, validator in validators.items():
                if param_name in bound_args.arguments:
                    value = bound_args.arguments[param_name]
                    # Skip validation for None if parameter has a default of None
                    if value is None:
                        param = sig.parameters.get(param_name)
                        if param and param.default is None:
                            continue
                    bound_args.arguments[param_name] = validator(value)

            return func(*bound_args.args, **bound_args.kwargs)

        return wrapper
    return decorator


def validate_positive_param(name: str, allow_zero: bool = False) -> Callable[[Any], float]:
    """Create a validator for positive float parameters."""
    return lambda x: validate_positive(x, name, allow_zero)


def validate_fields(obj: Any, rules: Dict[str, Callable[[Any], Any]]) -> None:
    """Apply validators to attributes of an object (e.g. a frozen dataclass).

    Raises:
        ValidationError: On the first attribute that fails validation.
    """
    for attr, validator in rules.items():
        validator(getattr(obj, attr))
