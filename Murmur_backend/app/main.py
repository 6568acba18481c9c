import logging

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import space, store, user
from app.config import settings
from app.database import create_tables
from app.services.expiry import ExpiryWatcher
from app.services.rooms import RoomService
from app.storage.gateway import StoreConflict, StoreError, build_gateway
from app.ws import LOBBY, event_manager

logger = logging.getLogger("murmur")

app = FastAPI(title="Murmur audio spaces")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(space.router, prefix="/api/spaces", tags=["spaces"])
app.include_router(user.router, prefix="/api/users", tags=["users"])
app.include_router(store.router, prefix="/api", tags=["store"])


@app.exception_handler(StoreError)
async def store_error_handler(request, exc: StoreError):
    status = 409 if isinstance(exc, StoreConflict) else 503
    logger.warning("STORE_ERROR path=%s status=%s error=%s", request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"detail": "service error", "error": str(exc)})


@app.on_event("startup")
async def startup():
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    if settings.STORE_BACKEND.strip().lower() == "sql":
        await create_tables()
    rooms = RoomService(
        build_gateway(settings),
        publisher=event_manager,
        enforce_capacity=settings.ENFORCE_CAPACITY,
        max_retries=settings.STORE_MAX_RETRIES,
        default_avatar_url=settings.DEFAULT_AVATAR_URL,
    )
    app.state.rooms = rooms
    app.state.expiry = ExpiryWatcher(rooms, interval=settings.EXPIRY_POLL_SECONDS)
    app.state.expiry.start()
    logger.info("STARTUP store=%s poll=%ss", settings.STORE_BACKEND, settings.EXPIRY_POLL_SECONDS)


@app.on_event("shutdown")
async def shutdown():
    expiry = getattr(app.state, "expiry", None)
    if expiry:
        await expiry.stop()


@app.get("/")
async def root():
    return {"message": "Murmur audio spaces"}


async def _hold(channel: str, websocket: WebSocket):
    # events only; anything the client sends is a heartbeat and ignored
    await event_manager.connect(channel, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        event_manager.disconnect(channel, websocket)


@app.websocket("/ws/space/{space_id}")
async def websocket_space_events(websocket: WebSocket, space_id: str):
    await _hold(space_id, websocket)


@app.websocket("/ws/spaces")
async def websocket_all_events(websocket: WebSocket):
    await _hold(LOBBY, websocket)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT)
