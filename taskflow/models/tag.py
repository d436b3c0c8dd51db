from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, func
from taskflow.database import Base

DEFAULT_TAG_COLOR = "#6366f1"

class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    color = Column(String, nullable=False, default=DEFAULT_TAG_COLOR)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class TaskTag(Base):
    __tablename__ = "task_tags"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    tag_id = Column(Integer, ForeignKey("tags.id"), nullable=False)

    __table_args__ = (UniqueConstraint("task_id", "tag_id", name="uq_task_tag"),)
