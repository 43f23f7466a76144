from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from app.models.database import Base


class KVEntry(Base):
    __tablename__ = "kv_entries"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)  # JSON document
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
