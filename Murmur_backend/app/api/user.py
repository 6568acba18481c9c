from fastapi import APIRouter, Depends, HTTPException

from app.services.outcome import Outcome
from app.services.rooms import RoomService, get_rooms
from schemas.user import ProfileCreateRequest, UserSpacesResponse

router = APIRouter()


def _dump(model) -> dict | None:
    return model.model_dump(by_alias=True, mode="json") if model else None


@router.post("")
async def create_profile(payload: ProfileCreateRequest, rooms: RoomService = Depends(get_rooms)):
    name = payload.display_name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="display_name is required")
    return _dump(await rooms.create_profile(name, payload.avatar_url))


@router.get("/available")
async def available_users(rooms: RoomService = Depends(get_rooms)):
    return [_dump(u) for u in await rooms.available_users()]


@router.get("/{user_id}")
async def get_user(user_id: str, rooms: RoomService = Depends(get_rooms)):
    user = await rooms.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="user not found")
    return _dump(user)


@router.post("/{user_id}/take")
async def take_user(user_id: str, rooms: RoomService = Depends(get_rooms)):
    outcome = await rooms.mark_user_taken(user_id)
    if outcome == Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="user not found")
    return {"success": True, "outcome": outcome.value}


@router.post("/{user_id}/free")
async def free_user(user_id: str, rooms: RoomService = Depends(get_rooms)):
    outcome = await rooms.free_user(user_id)
    if outcome == Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="user not found")
    return {"success": True, "outcome": outcome.value}


@router.get("/{user_id}/spaces", response_model=UserSpacesResponse)
async def user_spaces(user_id: str, rooms: RoomService = Depends(get_rooms)):
    found = await rooms.user_spaces(user_id)
    return UserSpacesResponse(
        recent=[_dump(s) for s in found["recent"]],
        top=[_dump(s) for s in found["top"]],
        active=_dump(found["active"]),
    )
