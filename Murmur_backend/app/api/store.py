"""Whole-document read/write endpoints.

Same wire format as the legacy Node demo store, so older clients (and the
HTTP gateway of another instance) can use this server as their store.
"""
from fastapi import APIRouter, Depends

from app.services.rooms import RoomService, get_rooms
from schemas.store import WriteRequest, WriteResponse

router = APIRouter()


@router.get("/read")
async def read_snapshot(rooms: RoomService = Depends(get_rooms)):
    snapshot = await rooms.snapshot()
    wire = snapshot.to_wire()
    return {"spaces": wire["spaces"], "users": wire["users"]}


@router.post("/write", response_model=WriteResponse)
async def write_snapshot(payload: WriteRequest, rooms: RoomService = Depends(get_rooms)):
    saved = await rooms.replace_snapshot(payload.users, payload.spaces)
    wire = saved.to_wire()
    return WriteResponse(status="success", success=True, users=wire["users"], spaces=wire["spaces"])
