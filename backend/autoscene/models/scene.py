from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

JSON_TYPE = JSON().with_variant(JSONB, "postgresql")


class SceneEntry(Base):
    """One key/value row of the scene store.

    ``key`` is ``temp_<id>`` for staged records and ``scene_<id>`` for
    finalized ones; ``payload`` is the JSON SceneRecord document.
    """

    __tablename__ = "scene_entries"

    key = Column(String(128), primary_key=True)
    status = Column(String(16), nullable=False)
    payload = Column(JSON_TYPE, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("status IN ('STAGED','FINAL')", name="chk_scene_entry_status"),
        Index("idx_scene_entries_status", "status"),
    )
