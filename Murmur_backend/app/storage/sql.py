import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.storage.gateway import SaveResult, StoreConflict, StoreUnavailable
from models.space import SpaceRecord
from models.system import SNAPSHOT_KEY, StoreState
from models.user import UserRecord
from schemas.space import Space
from schemas.store import Snapshot
from schemas.user import DEFAULT_AVATAR_URL, UserProfile

logger = logging.getLogger("murmur.storage")


def _space_record(space: Space, position: int) -> SpaceRecord:
    return SpaceRecord(
        id=space.id,
        position=position,
        title=space.title,
        host_id=space.host,
        active=space.active,
        started_at=space.started_at,
        ended_at=space.ended_at,
        payload=space.model_dump_json(by_alias=True),
    )


def _user_record(user: UserProfile, position: int) -> UserRecord:
    return UserRecord(
        id=user.id,
        position=position,
        display_name=user.display_name,
        avatar_url=user.avatar_url,
        taken=user.taken,
    )


class SqlGateway:
    """Snapshot store on SQLAlchemy. Spaces keep their full document as JSON
    next to a few indexed columns; saves are compare-and-swap on the
    ``store_state`` version row."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    async def load(self) -> Snapshot:
        try:
            async with self.session_factory() as db:
                user_rows = (await db.execute(select(UserRecord).order_by(UserRecord.position))).scalars().all()
                space_rows = (await db.execute(select(SpaceRecord).order_by(SpaceRecord.position))).scalars().all()
                state = await db.get(StoreState, SNAPSHOT_KEY)
        except SQLAlchemyError as exc:
            logger.warning("SNAPSHOT_READ_FAIL error=%s", exc)
            raise StoreUnavailable(f"read failed: {exc}") from exc
        return Snapshot(
            users=[
                UserProfile(
                    id=r.id,
                    display_name=r.display_name,
                    avatar_url=r.avatar_url or DEFAULT_AVATAR_URL,
                    taken=bool(r.taken),
                )
                for r in user_rows
            ],
            spaces=[Space.model_validate_json(r.payload) for r in space_rows],
            version=state.version if state else 0,
        )

    async def save(self, snapshot: Snapshot) -> SaveResult:
        next_version = snapshot.version + 1
        async with self.session_factory() as db:
            try:
                state = await db.get(StoreState, SNAPSHOT_KEY)
                if state is None:
                    if snapshot.version != 0:
                        raise StoreConflict(snapshot.version, 0)
                    db.add(StoreState(name=SNAPSHOT_KEY, version=next_version))
                else:
                    result = await db.execute(
                        update(StoreState)
                        .where(StoreState.name == SNAPSHOT_KEY, StoreState.version == snapshot.version)
                        .values(version=next_version)
                    )
                    if result.rowcount != 1:
                        raise StoreConflict(snapshot.version, state.version)

                await db.execute(delete(UserRecord))
                await db.execute(delete(SpaceRecord))
                db.add_all([_user_record(u, i) for i, u in enumerate(snapshot.users)])
                db.add_all([_space_record(s, i) for i, s in enumerate(snapshot.spaces)])
                await db.commit()
            except StoreConflict:
                await db.rollback()
                raise
            except IntegrityError as exc:
                await db.rollback()
                raise StoreConflict(snapshot.version, -1) from exc
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.warning("SNAPSHOT_WRITE_FAIL error=%s", exc)
                raise StoreUnavailable(f"write failed: {exc}") from exc

        saved = snapshot.model_copy(deep=True)
        saved.version = next_version
        return SaveResult(success=True, snapshot=saved)
