import argparse
import asyncio
import sys
from pathlib import Path


async def recreate_db(db_path: Path, seed: Path | None):
    # Remove existing SQLite file
    if db_path.exists():
        db_path.unlink()

    # Ensure backend root on import path
    backend_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(backend_root))

    from app.database import create_tables, make_session_factory  # type: ignore
    from app.storage.json_file import JsonFileGateway  # type: ignore
    from app.storage.sql import SqlGateway  # type: ignore

    engine, session_factory = make_session_factory(str(db_path))
    await create_tables(engine)
    if seed is not None:
        snapshot = await JsonFileGateway(seed).load()
        snapshot.version = 0
        await SqlGateway(session_factory).save(snapshot)
        print(f'Seeded {len(snapshot.users)} users and {len(snapshot.spaces)} spaces from {seed}.')
    await engine.dispose()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Recreate the SQLite snapshot store.')
    parser.add_argument('--db', default='murmur.db', help='SQLite file to recreate')
    parser.add_argument('--seed', default=None, help='JSON snapshot ({users, spaces}) to import')
    args = parser.parse_args()
    asyncio.run(recreate_db(Path(args.db), Path(args.seed) if args.seed else None))
    print('Database recreated.')
