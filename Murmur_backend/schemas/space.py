from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from schemas.user import CamelModel, DEFAULT_AVATAR_URL

DEFAULT_CAPACITY = 100
DEFAULT_DURATION_MS = 15 * 60 * 1000


class Role(str, Enum):
    HOST = "host"
    SPEAKER = "speaker"
    LISTENER = "listener"
    REQUESTED = "requested"


class ParticipantData(CamelModel):
    id: str
    display_name: str
    avatar_url: str = DEFAULT_AVATAR_URL
    role: Role = Role.LISTENER
    muted: bool = False


class Space(CamelModel):
    id: str
    title: str
    description: str = ""
    remote_name: str = ""

    participants: list[ParticipantData] = []
    host: str
    speakers: list[str] = []
    listeners: list[str] = []

    started_at: int
    duration: int = DEFAULT_DURATION_MS
    ended_at: int = 0
    active: bool = True

    capacity: int = DEFAULT_CAPACITY
    ask_to_join: bool = False
    ask_to_speak: bool = False

    ask_to_join_queue: list[str] = []
    approved_to_join: list[str] = []
    ask_to_join_history: list[str] = []
    banned: list[str] = []

    ask_to_speak_queue: list[str] = []
    ask_to_speak_history: list[str] = []
    ask_to_speak_timestamps: dict[str, int] = {}
    rejected_speakers: list[str] = []

    def participant(self, user_id: str | None) -> Optional[ParticipantData]:
        for p in self.participants:
            if p.id == user_id:
                return p
        return None

    def is_participant(self, user_id: str | None) -> bool:
        return self.participant(user_id) is not None


class CreateSpaceOptions(CamelModel):
    capacity: int | None = None
    ask_to_speak: bool | None = None
    ask_to_join: bool | None = None
    start_time: int | None = None
    duration: int | None = None


# Request / response bodies

class SpaceCreateRequest(BaseModel):
    title: str
    description: str = ""
    host_user_id: str
    capacity: int | None = Field(default=None, gt=0)
    ask_to_speak: bool | None = None
    ask_to_join: bool | None = None
    start_time: int | None = None
    duration: int | None = Field(default=None, gt=0)

    def options(self) -> CreateSpaceOptions:
        return CreateSpaceOptions(
            capacity=self.capacity,
            ask_to_speak=self.ask_to_speak,
            ask_to_join=self.ask_to_join,
            start_time=self.start_time,
            duration=self.duration,
        )


class JoinRequest(BaseModel):
    user_id: str
    as_speaker: bool = False


class MemberRequest(BaseModel):
    user_id: str


class ModerationRequest(BaseModel):
    user_id: str
    operator_user_id: str | None = None


class ApproveRequest(ModerationRequest):
    as_speaker: bool = False


class SpeakApproveRequest(ModerationRequest):
    # approved speak requests go on stage unless told otherwise
    as_speaker: bool = True


class MuteRequest(ModerationRequest):
    muted: bool = True


class EndRequest(BaseModel):
    operator_user_id: str | None = None


class CommandResponse(BaseModel):
    outcome: str
    space: dict | None = None


class SpaceListResponse(BaseModel):
    items: list[dict]
    page: int
    per_page: int
    total: int
    pages: int
