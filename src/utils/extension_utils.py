from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from core.constants import YAP_DECIMALS


def to_amount(value: Optional[Union[str, int]]) -> int:
    """Decimal-string amount from the database to int. Never compare the strings."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise TypeError("Amount cannot be a bool")
    if isinstance(value, int):
        return value
    return int(value.strip())


def format_token_amount(amount: int, decimals: int = YAP_DECIMALS) -> str:
    whole, fraction = divmod(amount, 10**decimals)
    if fraction == 0:
        return f"{whole:,}"
    return f"{whole:,}.{str(fraction).rjust(decimals, '0').rstrip('0')}"


def seconds_until_midnight_utc(now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return int((midnight - now).total_seconds())
