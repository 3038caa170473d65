"""ProjectRequest ORM model: the central entity of the fulfillment lifecycle.

The requester and the project are tagged unions flattened into columns.
``client_type`` and ``project_kind`` are the discriminants, and CHECK
constraints make the "exactly one variant populated" rule hold in the
database as well as in the input schemas.
"""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, Integer, Date, DateTime, JSON, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from request_desk.database import Base, str_enum, utcnow


class ClientType(str, enum.Enum):
    registered = "registered"
    guest = "guest"


class ProjectKind(str, enum.Enum):
    catalog = "catalog"
    custom = "custom"


class RequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    in_progress = "in-progress"
    completed = "completed"
    rejected = "rejected"


class PaymentOption(str, enum.Enum):
    advance = "advance"
    full = "full"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    partial = "partial"
    completed = "completed"


class ProjectRequest(Base):
    __tablename__ = "project_requests"

    request_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Requester variant
    client_type = Column(str_enum(ClientType), nullable=False)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=True, index=True)
    guest_name = Column(String(100), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(30), nullable=True)

    # Project variant
    project_kind = Column(str_enum(ProjectKind), nullable=False)
    project_id = Column(String(36), ForeignKey("projects.project_id"), nullable=True)
    custom_name = Column(String(200), nullable=True)
    custom_description = Column(Text, nullable=True)
    custom_technologies = Column(JSON, nullable=True)

    status = Column(str_enum(RequestStatus), nullable=False, default=RequestStatus.pending)
    payment_option = Column(str_enum(PaymentOption), nullable=False)
    payment_status = Column(str_enum(PaymentStatus), nullable=False, default=PaymentStatus.pending)
    estimated_price = Column(Integer, nullable=True)  # minor currency units
    actual_price = Column(Integer, nullable=True)

    # Progress metadata (admin-writable)
    current_module = Column(String(200), nullable=True)
    admin_notes = Column(Text, nullable=True)
    github_link = Column(String(500), nullable=True)
    expected_completion = Column(Date, nullable=True)

    approved_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "(client_type = 'registered' AND user_id IS NOT NULL AND guest_email IS NULL)"
            " OR (client_type = 'guest' AND user_id IS NULL AND guest_email IS NOT NULL)",
            name="ck_project_requests_requester_variant",
        ),
        CheckConstraint(
            "(project_kind = 'catalog' AND project_id IS NOT NULL AND custom_name IS NULL)"
            " OR (project_kind = 'custom' AND project_id IS NULL AND custom_name IS NOT NULL)",
            name="ck_project_requests_project_variant",
        ),
        CheckConstraint("estimated_price IS NULL OR estimated_price >= 0", name="ck_project_requests_estimated_price"),
        CheckConstraint("actual_price IS NULL OR actual_price >= 0", name="ck_project_requests_actual_price"),
    )

    # Optimistic concurrency: every UPDATE checks and bumps the version.
    __mapper_args__ = {"version_id_col": version}

    user = relationship("User")
    project = relationship("Project")
    history = relationship(
        "StatusHistoryEntry",
        back_populates="request",
        order_by="StatusHistoryEntry.seq",
        cascade="all, delete-orphan",
    )
    captures = relationship("PaymentCapture", back_populates="request", order_by="PaymentCapture.captured_at")

    @property
    def requester(self) -> dict:
        if self.client_type == ClientType.registered:
            return {
                "kind": ClientType.registered.value,
                "user_id": self.user_id,
                "username": self.user.username if self.user else None,
            }
        return {
            "kind": ClientType.guest.value,
            "name": self.guest_name,
            "email": self.guest_email,
            "phone": self.guest_phone,
        }

    @property
    def project_ref(self) -> dict:
        if self.project_kind == ProjectKind.catalog:
            project = self.project
            return {
                "kind": ProjectKind.catalog.value,
                "project_id": self.project_id,
                "name": project.name if project else None,
                "description": project.description if project else None,
                "technologies": list(project.technologies or []) if project else [],
            }
        return {
            "kind": ProjectKind.custom.value,
            "name": self.custom_name,
            "description": self.custom_description,
            "technologies": list(self.custom_technologies or []),
        }

    @property
    def requester_email(self) -> str | None:
        """Address for requester-facing notifications."""
        if self.client_type == ClientType.guest:
            return self.guest_email
        return self.user.email if self.user else None

    @property
    def display_name(self) -> str:
        return self.project_ref["name"] or "Project"

    @property
    def amount_paid(self) -> int:
        return sum(c.amount for c in self.captures)
