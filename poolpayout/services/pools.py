"""Pool keys: non-overlapping 12-hour UTC windows identified by (day, period)."""

from dataclasses import dataclass
from datetime import UTC, datetime

from db.enums import PoolPeriod

SECONDS_PER_DAY: int = 86400
SECONDS_PER_PERIOD: int = 43200

# Grace period after a pool closes before it may be processed.
READY_BUFFER_SECONDS: int = 30 * 60


@dataclass(frozen=True, order=True)
class PoolKey:
    day: int
    period: int

    def __post_init__(self) -> None:
        if self.day < 0:
            raise ValueError(f"day must be >= 0, got {self.day}")
        if self.period not in (PoolPeriod.AM, PoolPeriod.PM):
            raise ValueError(f"period must be 0 (AM) or 1 (PM), got {self.period}")

    @classmethod
    def from_timestamp(cls, ts: int) -> "PoolKey":
        return cls(day=ts // SECONDS_PER_DAY, period=(ts % SECONDS_PER_DAY) // SECONDS_PER_PERIOD)

    @property
    def start(self) -> int:
        return self.day * SECONDS_PER_DAY + self.period * SECONDS_PER_PERIOD

    @property
    def end(self) -> int:
        return self.start + SECONDS_PER_PERIOD

    def time_range(self) -> tuple[int, int]:
        return self.start, self.end

    def ready_time(self) -> int:
        return self.end + READY_BUFFER_SECONDS

    def describe(self) -> str:
        period = PoolPeriod(self.period)
        hours = "00:00-11:59" if period is PoolPeriod.AM else "12:00-23:59"
        return "\n".join(
            [
                f"Day: {self.day}",
                f"Period: {self.period} ({period.name} {hours} UTC)",
                f"Start: {datetime.fromtimestamp(self.start, tz=UTC).isoformat()}",
                f"End: {datetime.fromtimestamp(self.end, tz=UTC).isoformat()}",
            ]
        )

    def __str__(self) -> str:
        return f"{self.day}:{self.period}"


def parse_pool_key(raw: str) -> PoolKey:
    """Parse 'DAY:PERIOD' (e.g. 20300:1)."""
    try:
        day_str, period_str = raw.split(":")
        return PoolKey(day=int(day_str), period=int(period_str))
    except ValueError as exc:
        raise ValueError(f"Invalid pool key '{raw}'. Expected DAY:PERIOD (e.g. 20300:1)") from exc


def scheduled_pool_key(now: int) -> PoolKey:
    """Pool the cron should process at `now`.

    Runs at 00:30 UTC pick yesterday's PM pool; runs at 12:30 UTC pick
    today's AM pool.
    """
    current_day = now // SECONDS_PER_DAY
    current_hour = (now % SECONDS_PER_DAY) // 3600
    if current_hour < 12:
        return PoolKey(day=current_day - 1, period=1)
    return PoolKey(day=current_day, period=0)
