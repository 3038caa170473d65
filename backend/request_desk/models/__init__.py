"""ORM models: importing this package registers every table on ``Base.metadata``."""
from request_desk.models.user import User, UserRole  # noqa: F401
from request_desk.models.project import Project  # noqa: F401
from request_desk.models.request import (  # noqa: F401
    ProjectRequest, ClientType, ProjectKind, RequestStatus, PaymentOption, PaymentStatus,
)
from request_desk.models.status_history import StatusHistoryEntry  # noqa: F401
from request_desk.models.payment import PaymentOrder, PaymentCapture, OrderPurpose, OrderStatus  # noqa: F401
