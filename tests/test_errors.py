"""
Tests for SDK errors.
"""
import pytest

from mxw_sdk import errors
from mxw_sdk.version import __version__


@pytest.mark.parametrize("code,error_class", [
    (errors.MISSING_ARGUMENT, errors.ValidationError),
    (errors.INVALID_ADDRESS, errors.ValidationError),
    (errors.MISSING_FEES, errors.ValidationError),
    (errors.CALL_EXCEPTION, errors.ProtocolError),
    (errors.NUMERIC_FAULT, errors.ChainRejectionError),
    (errors.KYC_REQUIRED, errors.ChainRejectionError),
    (errors.INSUFFICIENT_FUNDS, errors.ChainRejectionError),
    (errors.CONNECTION_ERROR, errors.MxwConnectionError),
    (errors.NOT_FOUND, errors.InfrastructureError),
    (errors.TIMEOUT, errors.MxwTimeoutError),
    (errors.NOT_AVAILABLE, errors.StateError),
])
def test_error_classes(code, error_class):
    error = errors.create_error("failure", code)
    assert isinstance(error, error_class)
    assert isinstance(error, errors.MxwError)
    assert error.code == code


def test_builtin_bases():
    """SDK errors can be caught with the matching builtin exception"""
    assert isinstance(errors.create_error("bad", errors.INVALID_ARGUMENT), ValueError)
    assert isinstance(errors.create_error("down", errors.CONNECTION_ERROR), ConnectionError)
    assert isinstance(errors.create_error("slow", errors.TIMEOUT), TimeoutError)
    assert isinstance(errors.create_error("early", errors.NOT_INITIALIZED), RuntimeError)


def test_message_and_params():
    error = errors.create_error("invalid value", errors.INVALID_ARGUMENT, {"arg": "value", "value": 3})

    assert error.reason == "invalid value"
    assert str(error) == f'invalid value (arg="value", value=3, version={__version__})'
    assert error.arg == "value"
    assert error.value == 3


def test_reserved_params_are_not_attributes():
    error = errors.create_error("failure", errors.UNEXPECTED_RESULT, {"code": "other", "reason": "other"})
    assert error.code == errors.UNEXPECTED_RESULT
    assert error.reason == "failure"


def test_unserializable_params():
    error = errors.create_error("failure", errors.UNKNOWN_ERROR, {"value": object()})
    assert "value=\"<object object" in str(error)


def test_default_code():
    error = errors.create_error("failure")
    assert error.code == errors.UNKNOWN_ERROR
    assert isinstance(error, errors.ProtocolError)


def test_throw_error():
    with pytest.raises(errors.StateError) as exc_info:
        errors.throw_error("missing provider", errors.NOT_INITIALIZED, {"argument": "provider"})
    assert exc_info.value.argument == "provider"


def test_is_error_code():
    error = errors.create_error("failure", errors.NOT_FOUND)
    assert errors.is_error_code(error, errors.NOT_FOUND)
    assert not errors.is_error_code(error, errors.TIMEOUT)
    assert not errors.is_error_code(ValueError("x"), errors.NOT_FOUND)
