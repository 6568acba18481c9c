from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DEFAULT_AVATAR_URL = "https://www.mediasfu.com/logo192.png"


class CamelModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserProfile(CamelModel):
    id: str
    display_name: str
    avatar_url: str = DEFAULT_AVATAR_URL
    taken: bool = False


class ProfileCreateRequest(BaseModel):
    display_name: str
    avatar_url: str | None = None


class UserSpacesResponse(BaseModel):
    recent: list[dict]
    top: list[dict]
    active: dict | None = None
