from .core import (  # noqa: F401
    TimeStampedModel,
    Service,
    InstrumentBox,
    UserRole,
    AuditLog,
)
from .workflow_log import WorkflowLogEntry  # noqa: F401
from .assignment import BoxAssignment  # noqa: F401
from .sterility_alert import SterilityAlert  # noqa: F401
