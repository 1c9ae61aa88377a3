"""
Conversion between mxw and its smallest unit, cin.
"""
from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

from .. import errors
from ..constants import MXW_DECIMALS
from .misc import to_int


def parse_units(value: Union[str, int, Decimal], decimals: int = MXW_DECIMALS) -> int:
    """
    Parse a decimal amount into an integer amount of the smallest unit.

    Raises:
        ChainRejectionError: NUMERIC_FAULT if the value has too many decimals
        ValidationError: INVALID_ARGUMENT if the value is not a number
    """
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        errors.throw_error("invalid decimal value", errors.INVALID_ARGUMENT, {"arg": "value", "value": value})
    if not amount.is_finite():
        errors.throw_error("invalid decimal value", errors.INVALID_ARGUMENT, {"arg": "value", "value": value})

    with localcontext() as context:
        # Exact for any number of significant digits
        context.prec = max(context.prec, len(amount.as_tuple().digits) + decimals)
        scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        errors.throw_error("underflow occurred", errors.NUMERIC_FAULT, {"operation": "parseUnits", "fault": "underflow"})
    return int(scaled)


def format_units(value: Union[str, int], decimals: int = MXW_DECIMALS) -> str:
    amount = to_int(value)
    negative = amount < 0
    whole, fraction = divmod(abs(amount), 10 ** decimals)
    fraction_text = str(fraction).rjust(decimals, "0").rstrip("0") or "0"
    return f"{'-' if negative else ''}{whole}.{fraction_text}"


def parse_mxw(value: Union[str, int, Decimal]) -> int:
    return parse_units(value, MXW_DECIMALS)


def format_mxw(value: Union[str, int]) -> str:
    return format_units(value, MXW_DECIMALS)
