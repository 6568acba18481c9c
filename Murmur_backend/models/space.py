from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Boolean, Text
from sqlalchemy.sql import func
from app.database import Base


class SpaceRecord(Base):
    __tablename__ = "spaces"

    id = Column(String, primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)  # order inside the snapshot
    title = Column(String, nullable=False, default="")
    host_id = Column(String, index=True, nullable=True)
    active = Column(Boolean, index=True, nullable=False, default=True)
    started_at = Column(BigInteger, nullable=False, default=0)
    ended_at = Column(BigInteger, nullable=False, default=0)
    payload = Column(Text, nullable=False)  # full Space document, camelCase JSON
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
