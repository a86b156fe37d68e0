from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from equation_deploy.constants import RATE_BASE_PER_PERCENT
from equation_deploy.errors import FormatError

PERCENT_SUFFIX = "%"


def parse_percent(value: str) -> int:
    """
    Decodes a percent string into its fixed-point representation.

    >>> parse_percent("0.05%")
    50000
    """
    if not isinstance(value, str) or not value.endswith(PERCENT_SUFFIX):
        raise FormatError(f"invalid percent '{value}', should end with {PERCENT_SUFFIX}")

    prefix = value[: -len(PERCENT_SUFFIX)].strip()
    try:
        number = Decimal(prefix)
    except InvalidOperation:
        raise FormatError(f"invalid percent '{value}', '{prefix}' is not a decimal")
    if not number.is_finite():
        raise FormatError(f"invalid percent '{value}', '{prefix}' is not a finite decimal")
    if number < 0:
        raise FormatError(f"invalid percent '{value}', rates cannot be negative")

    # exact product, whatever the length of the input
    with localcontext() as context:
        context.prec = max(context.prec, len(prefix) + 16)
        scaled = number * RATE_BASE_PER_PERCENT
        try:
            return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))
        except InvalidOperation:
            raise FormatError(f"invalid percent '{value}', out of range")


def format_percent(value: int) -> str:
    """Renders a fixed-point rate as the shortest percent string decoding back to it."""
    number = Decimal(value) / RATE_BASE_PER_PERCENT
    text = format(number.normalize(), "f")
    return f"{text}{PERCENT_SUFFIX}"
