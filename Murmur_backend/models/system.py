from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from app.database import Base

SNAPSHOT_KEY = "snapshot"


class StoreState(Base):
    """One row per stored document; ``version`` drives compare-and-swap saves."""

    __tablename__ = "store_state"

    name = Column(String, primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
