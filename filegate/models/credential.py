# filegate/models/credential.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from filegate.models.database import Base


class AccessCredential(Base):
    __tablename__ = "access_credentials"

    # append-only; a tenant can end up with more than one row (see DESIGN.md)
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(63), ForeignKey("users.user_id"), index=True, nullable=False)
    token = Column(Text, nullable=False)         # query string, leading "?"
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    # Many credentials → one user
    user = relationship("User", back_populates="credentials")
