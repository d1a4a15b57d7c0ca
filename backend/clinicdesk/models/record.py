"""
StoredCollection: one row per persisted key.

All data lives as whole JSON documents (a collection array, the
settings object, or a scalar like the clinic id) under namespaced keys.
"""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from clinicdesk.db.base import Base


class StoredCollection(Base):
    __tablename__ = "kv_store"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)  # JSON document
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<StoredCollection key={self.key}>"
