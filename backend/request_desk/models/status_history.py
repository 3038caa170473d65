"""StatusHistoryEntry ORM model: append-only audit trail of a request.

Entries are ordered by ``seq``, an autoincrementing integer assigned at
insert time, so ordering never depends on wall-clock resolution.
"""
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from request_desk.database import Base, str_enum, utcnow
from request_desk.models.request import RequestStatus


class StatusHistoryEntry(Base):
    __tablename__ = "request_status_history"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String(36), ForeignKey("project_requests.request_id"), nullable=False, index=True)
    status = Column(str_enum(RequestStatus), nullable=False)
    notes = Column(Text, nullable=True)
    updated_by = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    request = relationship("ProjectRequest", back_populates="history")
