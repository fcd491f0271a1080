"""
Commission schedule: upline level -> commission amount.
Loads from Config module.
"""
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union
import logging

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


class ScheduleEntry:
    """
    One level of the schedule: either a fixed amount or a percentage
    of the order amount.
    """

    __slots__ = ("fixed", "percent")

    def __init__(self, fixed: Optional[Decimal] = None, percent: Optional[Decimal] = None):
        self.fixed = fixed
        self.percent = percent

    @classmethod
    def parse(cls, value: Union[int, float, str, Decimal]) -> "ScheduleEntry":
        """
        Parse a raw schedule value.

        Args:
            value: 75000, "12500" or "10%"

        Raises:
            ValueError: If value is negative or not a number
        """
        if isinstance(value, str) and value.strip().endswith("%"):
            percent = Decimal(value.strip()[:-1])
            if percent < 0:
                raise ValueError(f"Negative commission percentage: {value}")
            return cls(percent=percent / 100)

        fixed = Decimal(str(value))
        if fixed < 0:
            raise ValueError(f"Negative commission amount: {value}")
        return cls(fixed=fixed)

    def amount_for(self, order_amount: Decimal) -> Decimal:
        if self.percent is not None:
            return (Decimal(str(order_amount)) * self.percent).quantize(CENT)
        return self.fixed

    def __repr__(self):
        if self.percent is not None:
            return f"<ScheduleEntry({self.percent * 100}%)>"
        return f"<ScheduleEntry({self.fixed})>"


class CommissionSchedule:
    """
    Immutable level -> amount mapping.

    Levels absent from the schedule pay zero, which truncates payouts to
    the configured levels even when the upline chain is longer.
    """

    def __init__(self, levels: Mapping[int, Any]):
        entries: Dict[int, ScheduleEntry] = {}
        for level, value in levels.items():
            level = int(level)
            if level < 1:
                raise ValueError(f"Commission level must be >= 1, got {level}")
            entries[level] = value if isinstance(value, ScheduleEntry) else ScheduleEntry.parse(value)

        self._entries = MappingProxyType(entries)

    @classmethod
    def from_config(cls) -> "CommissionSchedule":
        """Build schedule from Config.COMMISSION_SCHEDULE."""
        from config import Config, DEFAULT_COMMISSION_SCHEDULE

        raw = Config.get(Config.COMMISSION_SCHEDULE)
        if not raw:
            logger.warning("COMMISSION_SCHEDULE not configured, using default schedule")
            raw = DEFAULT_COMMISSION_SCHEDULE

        return cls(raw)

    @property
    def max_level(self) -> int:
        return max(self._entries) if self._entries else 0

    @property
    def levels(self) -> Mapping[int, ScheduleEntry]:
        return self._entries

    def amount_for(self, level: int, order_amount: Decimal = ZERO) -> Decimal:
        """
        Commission for a level.

        Args:
            level: Upline level (1 = direct referrer)
            order_amount: Order total, used by percentage entries

        Returns:
            Amount, Decimal("0") for unconfigured levels
        """
        entry = self._entries.get(level)
        if entry is None:
            return ZERO
        return entry.amount_for(order_amount)

    def __contains__(self, level: int) -> bool:
        return level in self._entries

    def __len__(self):
        return len(self._entries)

    def __repr__(self):
        return f"<CommissionSchedule({dict(self._entries)})>"
