"""Catalog Project ORM model: read-only from this service's point of view."""
import uuid
from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, JSON
from sqlalchemy.sql import func
from request_desk.database import Base


class Project(Base):
    __tablename__ = "projects"

    project_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    technologies = Column(JSON, nullable=False, default=list)
    category = Column(String(30), nullable=False, default="other")  # web, mobile, desktop, ai-ml, other
    price = Column(Integer, nullable=False, default=0)  # minor currency units
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
