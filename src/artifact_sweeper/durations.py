"""Parsing of ``"<number> <unit>"`` age thresholds."""

from __future__ import annotations

import calendar
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict

from .errors import ConfigError

# Short aliases are case sensitive ("M" is months, "m" is minutes).
_SHORT_UNITS: Dict[str, str] = {
    "ms": "milliseconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
    "M": "months",
    "Q": "quarters",
    "y": "years",
}

_LONG_UNITS: Dict[str, str] = {}
for _canonical in set(_SHORT_UNITS.values()):
    _LONG_UNITS[_canonical] = _canonical
    _LONG_UNITS[_canonical[:-1]] = _canonical

_MONTHS_PER_UNIT = {"months": 1, "quarters": 3, "years": 12}
_DAYS_PER_UNIT = {"days": 1, "weeks": 7}


def normalize_unit(unit: str) -> str:
    """Return the canonical plural unit name for *unit*."""

    if unit in _SHORT_UNITS:
        return _SHORT_UNITS[unit]
    canonical = _LONG_UNITS.get(unit.lower())
    if canonical is None:
        raise ConfigError(f"Unsupported age unit {unit!r}.")
    return canonical


def subtract_months(moment: datetime, months: int) -> datetime:
    """Move *moment* back by calendar months, clamping to the end of the target month."""

    index = moment.year * 12 + (moment.month - 1) - months
    year, month_index = divmod(index, 12)
    month = month_index + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _round_half_away(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


@dataclass(frozen=True)
class AgeThreshold:
    amount: float
    unit: str
    label: str

    def cutoff(self, now: datetime) -> datetime:
        """Return the instant that lies ``amount unit`` before *now*.

        Day, week and calendar amounts are rounded to whole days or months;
        smaller units are subtracted exactly.
        """

        if self.unit in _MONTHS_PER_UNIT:
            return subtract_months(now, _round_half_away(self.amount * _MONTHS_PER_UNIT[self.unit]))
        if self.unit in _DAYS_PER_UNIT:
            return now - timedelta(days=_round_half_away(self.amount * _DAYS_PER_UNIT[self.unit]))
        return now - timedelta(**{self.unit: self.amount})


def parse_age(value: str) -> AgeThreshold:
    """Parse an age such as ``"30 days"`` or ``"2 w"``.

    Raises :class:`ConfigError` when the value is not two tokens, the amount is
    not a non-negative number, or the unit is unknown.
    """

    tokens = (value or "").split()
    if len(tokens) != 2:
        raise ConfigError(f"age must look like '<number> <unit>', got {value!r}.")
    raw_amount, raw_unit = tokens
    try:
        amount = float(raw_amount)
    except ValueError as exc:
        raise ConfigError(f"age amount {raw_amount!r} is not a number.") from exc
    if amount < 0 or not math.isfinite(amount):
        raise ConfigError(f"age amount {raw_amount!r} must be a non-negative number.")
    unit = normalize_unit(raw_unit)
    return AgeThreshold(amount=amount, unit=unit, label=f"{raw_amount} {raw_unit}")


__all__ = ["AgeThreshold", "normalize_unit", "parse_age", "subtract_months"]
