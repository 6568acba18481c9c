from dataclasses import dataclass
from enum import Enum
from typing import Optional

from schemas.space import Space


class Outcome(str, Enum):
    """What a state-machine command did to a space.

    Commands never raise on a bad precondition. Callers that ignore the
    outcome see the old silent no-op behaviour; callers that care can tell a
    refused command from one that changed nothing.
    """

    APPLIED = "applied"
    QUEUED = "queued"
    UNCHANGED = "unchanged"
    ALREADY_MEMBER = "already_member"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    BANNED = "banned"
    FULL = "full"

    @property
    def changed(self) -> bool:
        return self in (Outcome.APPLIED, Outcome.QUEUED)


@dataclass
class CommandResult:
    outcome: Outcome
    space: Optional[Space] = None

    @property
    def changed(self) -> bool:
        return self.outcome.changed
