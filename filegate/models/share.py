# filegate/models/share.py
from sqlalchemy import Column, DateTime, Integer, String, Text

from filegate.models.database import Base
from filegate.models.user import utcnow

SHARE_OPERATIONS = ("create", "edit")


class ShareRecord(Base):
    __tablename__ = "shares"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(64), index=True, nullable=False)  # caller-supplied; edits reuse it
    name = Column(String(255), nullable=False)
    url = Column(Text, nullable=False)                     # public object URL
    # no FK: a namespace can predate its users row
    user_id = Column(String(63), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    source_etag = Column(String(255), nullable=False)
    operation = Column(String(16), nullable=False)
