import pytest

from tradeguard.utils.validation import (
    ValidationError,
    validate_params,
    validate_positive,
    validate_positive_param,
    validate_probability,
    validate_range,
)


def test_validate_positive():
    assert validate_positive(1, "x") == 1.0
    assert validate_positive(0, "x", allow_zero=True) == 0.0
    with pytest.raises(ValidationError):
        validate_positive(0, "x")
    with pytest.raises(ValidationError):
        validate_positive(float("nan"), "x")
    with pytest.raises(ValidationError):
        validate_positive("abc", "x")


def test_validate_range():
    assert validate_range(0.5, "x", 0.0, 1.0) == 0.5
    with pytest.raises(ValidationError):
        validate_range(1.0, "x", 0.0, 1.0, inclusive=False)
    with pytest.raises(ValidationError):
        validate_probability(1.5, "p")


def test_validate_params_decorator():
    @validate_params(size=validate_positive_param("size"))
    def order(asset, size, note=None):
        return asset, size, note

    assert order("BTC", "2") == ("BTC", 2.0, None)
    with pytest.raises(ValidationError):
        order("BTC", -1)


def test_validation_error_is_value_error():
    assert issubclass(ValidationError, ValueError)
