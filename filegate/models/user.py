from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from filegate.models.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    # lowercased; doubles as the namespace key
    user_id = Column(String(63), primary_key=True)
    creation_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    phash = Column(String(255), nullable=True)
    locked = Column(Boolean, nullable=True)

    # One user → many credentials
    credentials = relationship("AccessCredential", back_populates="user")
