from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from taskflow.database import Base

class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    key = Column(String, unique=True, index=True, nullable=False)  # short code, e.g. WEBS-4821
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # creating user
    status = Column(String, nullable=False, default="ACTIVE")  # ACTIVE, ARCHIVED, COMPLETED
    created_at = Column(DateTime(timezone=True), server_default=func.now())
