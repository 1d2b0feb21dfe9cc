from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .config import BOOKING_DB, SQL_ECHO

if not BOOKING_DB:
    raise RuntimeError("BOOKING_DB environment variable is not set")

engine = create_async_engine(BOOKING_DB, echo=SQL_ECHO, pool_pre_ping=True)

SessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db():
    async with SessionLocal() as session:
        yield session
