from fastapi import APIRouter, Depends, HTTPException, Request

from app.security import require_moderator, resolve_operator
from app.services import views
from app.services.outcome import CommandResult, Outcome
from app.services.rooms import RoomService, get_rooms
from schemas.space import (
    ApproveRequest,
    CommandResponse,
    EndRequest,
    JoinRequest,
    MemberRequest,
    ModerationRequest,
    MuteRequest,
    Space,
    SpaceCreateRequest,
    SpaceListResponse,
    SpeakApproveRequest,
)

router = APIRouter()


def _dump(space: Space | None) -> dict | None:
    return space.model_dump(by_alias=True, mode="json") if space else None


def _respond(result: CommandResult) -> CommandResponse:
    if result.outcome == Outcome.NOT_FOUND and result.space is None:
        raise HTTPException(status_code=404, detail="space not found")
    return CommandResponse(outcome=result.outcome.value, space=_dump(result.space))


async def _load_space(rooms: RoomService, space_id: str) -> Space:
    space = await rooms.get_space(space_id)
    if not space:
        raise HTTPException(status_code=404, detail="space not found")
    return space


@router.post("", response_model=CommandResponse)
async def create_space(payload: SpaceCreateRequest, rooms: RoomService = Depends(get_rooms)):
    title = payload.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="title is required")
    result = await rooms.create_space(title, payload.description, payload.host_user_id, payload.options())
    if result.outcome == Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="host user not found")
    return _respond(result)


@router.get("", response_model=SpaceListResponse)
async def list_spaces(
    q: str = "",
    status: str = "all",
    page: int = 1,
    per_page: int = 5,
    rooms: RoomService = Depends(get_rooms),
):
    if status.lower() not in {"all", "live", "scheduled", "ended"}:
        raise HTTPException(status_code=400, detail="status must be one of all, live, scheduled, ended")
    per_page = max(1, min(per_page, 100))
    result = await rooms.list_spaces(q, status, page, per_page)
    return SpaceListResponse(
        items=[_dump(s) for s in result.items],
        page=result.page,
        per_page=result.per_page,
        total=result.total,
        pages=result.pages,
    )


@router.get("/{space_id}")
async def get_space(space_id: str, rooms: RoomService = Depends(get_rooms)):
    return _dump(await _load_space(rooms, space_id))


@router.get("/{space_id}/view")
async def space_view(space_id: str, user_id: str | None = None, rooms: RoomService = Depends(get_rooms)):
    space = await _load_space(rooms, space_id)
    return views.space_view(space, user_id)


@router.post("/{space_id}/end", response_model=CommandResponse)
async def end_space(space_id: str, payload: EndRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    space = await _load_space(rooms, space_id)
    require_moderator(request, space, payload.operator_user_id)
    return _respond(await rooms.end_space(space_id))


@router.post("/{space_id}/join", response_model=CommandResponse)
async def join_space(space_id: str, payload: JoinRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    user_id = resolve_operator(request, payload.user_id)
    return _respond(await rooms.join_space(space_id, user_id, payload.as_speaker))


@router.post("/{space_id}/leave", response_model=CommandResponse)
async def leave_space(space_id: str, payload: MemberRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    user_id = resolve_operator(request, payload.user_id)
    return _respond(await rooms.leave_space(space_id, user_id))


@router.post("/{space_id}/mute", response_model=CommandResponse)
async def mute_participant(space_id: str, payload: MuteRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    space = await _load_space(rooms, space_id)
    operator_id = resolve_operator(request, payload.operator_user_id)
    # anyone may toggle their own mic; muting someone else is moderation
    if operator_id != payload.user_id:
        require_moderator(request, space, operator_id)
    return _respond(await rooms.mute_participant(space_id, payload.user_id, payload.muted))


@router.post("/{space_id}/ban", response_model=CommandResponse)
async def ban_participant(space_id: str, payload: ModerationRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    space = await _load_space(rooms, space_id)
    require_moderator(request, space, payload.operator_user_id)
    return _respond(await rooms.ban_participant(space_id, payload.user_id))


@router.post("/{space_id}/speak/request", response_model=CommandResponse)
async def request_to_speak(space_id: str, payload: MemberRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    user_id = resolve_operator(request, payload.user_id)
    return _respond(await rooms.request_to_speak(space_id, user_id))


@router.post("/{space_id}/speak/approve", response_model=CommandResponse)
async def approve_speak_request(space_id: str, payload: SpeakApproveRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    space = await _load_space(rooms, space_id)
    require_moderator(request, space, payload.operator_user_id)
    return _respond(await rooms.approve_request(space_id, payload.user_id, payload.as_speaker))


@router.post("/{space_id}/speak/reject", response_model=CommandResponse)
async def reject_speak_request(space_id: str, payload: ModerationRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    space = await _load_space(rooms, space_id)
    require_moderator(request, space, payload.operator_user_id)
    return _respond(await rooms.reject_request(space_id, payload.user_id))


@router.post("/{space_id}/speak/grant", response_model=CommandResponse)
async def grant_speaking_role(space_id: str, payload: ModerationRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    space = await _load_space(rooms, space_id)
    require_moderator(request, space, payload.operator_user_id)
    return _respond(await rooms.grant_speaking_role(space_id, payload.user_id))


@router.post("/{space_id}/join-requests/approve", response_model=CommandResponse)
async def approve_join_request(space_id: str, payload: ApproveRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    space = await _load_space(rooms, space_id)
    require_moderator(request, space, payload.operator_user_id)
    return _respond(await rooms.approve_join_request(space_id, payload.user_id, payload.as_speaker))


@router.post("/{space_id}/join-requests/reject", response_model=CommandResponse)
async def reject_join_request(space_id: str, payload: ModerationRequest, request: Request, rooms: RoomService = Depends(get_rooms)):
    space = await _load_space(rooms, space_id)
    require_moderator(request, space, payload.operator_user_id)
    return _respond(await rooms.reject_join_request(space_id, payload.user_id))
