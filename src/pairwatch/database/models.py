"""
SQLAlchemy models for durable collector state.
"""

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SnapshotDB(Base):
    """Serialized pair map stored under a fixed logical key."""

    __tablename__ = "collector_snapshots"

    key = Column(String, primary_key=True)
    payload = Column(LargeBinary, nullable=False)  # msgpack-encoded pair map
    pair_count = Column(Integer, nullable=False, default=0)
    saved_at = Column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<SnapshotDB(key={self.key}, pair_count={self.pair_count})>"
