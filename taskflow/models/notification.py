from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, func
from taskflow.database import Base

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, nullable=False, default="SYSTEM")  # TASK_ASSIGNED, TEAM_INVITATION, SYSTEM
    read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
