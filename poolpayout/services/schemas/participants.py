"""Participant records as parsed at the storage boundary.

Rows are read fresh per run and never mutated; derived values go into new
structures (reward shares, leaves, claim records).
"""

from pydantic import BaseModel, ConfigDict, Field

# Penalty level at which the whole stake is slashed.
FULL_SLASH_LEVEL: int = 3


class Participant(BaseModel):
    """Fields common to every pool type."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(min_length=1)
    address: str
    stake_amount: int

    @property
    def identity_key(self) -> str:
        return self.address


class AlarmParticipant(Participant):
    """One staked alarm. Snooze count is the penalty level."""

    alarm_id: int = Field(ge=0)
    wakeup_time: int = Field(ge=0)
    snooze_count: int = Field(ge=0)

    @property
    def penalty_level(self) -> int:
        return self.snooze_count


class FocusParticipant(Participant):
    """One focus lock session. A completed lock is a winning unit."""

    session_id: int = Field(ge=0)
    start_time: int = Field(ge=0)
    duration: int = Field(ge=0)
    completed: bool

    @property
    def penalty_level(self) -> int:
        return 0 if self.completed else FULL_SLASH_LEVEL

    @property
    def identity_key(self) -> str:
        return focus_identity_key(self.address, self.session_id)


def focus_identity_key(address: str, session_id: int) -> str:
    return f"{address}_{session_id}"


# Participants that carry a penalty level.
PoolParticipant = AlarmParticipant | FocusParticipant
