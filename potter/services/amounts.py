"""Human <-> raw token amount conversion.

Raw amounts are integers in the mint's smallest unit and must fit in a u64.
Human amounts are decimals scaled by ``10 ** decimals``. Conversion uses exact
decimal arithmetic; fractional raw results are rounded half-up.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Union

from potter.services.errors import ErrorKind, OperationError

U64_MAX = 2**64 - 1
MAX_DECIMALS = 9

HumanAmount = Union[Decimal, int, float, str]


def _check_decimals(decimals: int) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise OperationError(ErrorKind.INVALID_AMOUNT, detail=f"decimals must be an integer, got {decimals!r}")
    if decimals < 0 or decimals > MAX_DECIMALS:
        raise OperationError(ErrorKind.INVALID_AMOUNT, detail=f"decimals must be within 0..{MAX_DECIMALS}, got {decimals}")


def _to_decimal(amount: HumanAmount) -> Decimal:
    if isinstance(amount, bool):
        raise OperationError(ErrorKind.INVALID_AMOUNT, detail=f"not a number: {amount!r}")
    try:
        # floats go through their shortest repr so 0.1 stays 0.1
        value = Decimal(str(amount)) if isinstance(amount, float) else Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise OperationError(ErrorKind.INVALID_AMOUNT, detail=f"not a number: {amount!r}")
    if not value.is_finite():
        raise OperationError(ErrorKind.INVALID_AMOUNT, detail=f"not a finite number: {amount!r}")
    return value


def require_positive(amount: HumanAmount) -> Decimal:
    """Validate a human amount for mint/burn/transfer"""
    value = _to_decimal(amount)
    if value <= 0:
        raise OperationError(ErrorKind.INVALID_AMOUNT, detail=f"amount must be positive, got {amount}")
    return value


def to_raw(amount: HumanAmount, decimals: int) -> int:
    """Scale a human amount to raw units.

    Raises OperationError(AmountOverflow) when the result is negative or
    exceeds U64_MAX; U64_MAX itself is accepted.
    """
    _check_decimals(decimals)
    value = _to_decimal(amount)
    if value and value.adjusted() + decimals > 20:
        raise OperationError(
            ErrorKind.AMOUNT_OVERFLOW,
            detail=f"{amount} with {decimals} decimals does not fit in u64",
        )
    with localcontext() as ctx:
        # enough digits to hold every input digit, so only quantize rounds
        ctx.prec = max(60, len(value.as_tuple().digits) + decimals + 1)
        scaled = (value.scaleb(decimals)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    raw = int(scaled)
    if raw < 0 or raw > U64_MAX:
        raise OperationError(
            ErrorKind.AMOUNT_OVERFLOW,
            detail=f"{amount} with {decimals} decimals is {raw} raw units",
        )
    return raw


def to_human(raw: int, decimals: int) -> Decimal:
    """Exact inverse of to_raw for in-range raw values"""
    _check_decimals(decimals)
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise OperationError(ErrorKind.INVALID_AMOUNT, detail=f"raw amount must be an integer, got {raw!r}")
    if raw < 0 or raw > U64_MAX:
        raise OperationError(ErrorKind.AMOUNT_OVERFLOW, detail=f"raw amount {raw} is outside u64")
    with localcontext() as ctx:
        ctx.prec = 60
        return Decimal(raw).scaleb(-decimals)


def to_ui_amount(raw: int, decimals: int) -> float:
    """Float for display only.

    Values above 2**53 raw units lose precision here; never feed this back
    into to_raw as if it were the ledger's value.
    """
    return float(to_human(raw, decimals))
