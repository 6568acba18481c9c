from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func
from app.database import Base


class UserRecord(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)
    display_name = Column(String, nullable=False, default="")
    avatar_url = Column(String, nullable=True)
    taken = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
