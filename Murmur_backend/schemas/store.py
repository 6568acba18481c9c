from typing import Optional

from pydantic import BaseModel

from schemas.space import Space
from schemas.user import UserProfile


class Snapshot(BaseModel):
    """The whole persisted document: every user and every space."""

    users: list[UserProfile] = []
    spaces: list[Space] = []
    version: int = 0

    def space(self, space_id: str) -> Optional[Space]:
        for s in self.spaces:
            if s.id == space_id:
                return s
        return None

    def user(self, user_id: str) -> Optional[UserProfile]:
        for u in self.users:
            if u.id == user_id:
                return u
        return None

    def to_wire(self) -> dict:
        return {
            "users": [u.model_dump(by_alias=True, mode="json") for u in self.users],
            "spaces": [s.model_dump(by_alias=True, mode="json") for s in self.spaces],
        }

    @classmethod
    def from_wire(cls, data: dict, version: int = 0) -> "Snapshot":
        return cls(
            users=data.get("users") or [],
            spaces=data.get("spaces") or [],
            version=version,
        )


class WriteRequest(BaseModel):
    users: list[UserProfile] = []
    spaces: list[Space] = []


class WriteResponse(BaseModel):
    status: str
    success: bool
    users: list[dict] | None = None
    spaces: list[dict] | None = None
