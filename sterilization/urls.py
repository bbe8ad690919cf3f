# sterilization/urls.py

from django.urls import path, include
from rest_framework.routers import DefaultRouter

# -------------------------------------------------
# Core API
# -------------------------------------------------
from .views import (
    ExpiringBoxesView,
    HealthCheckView,
    InstrumentBoxViewSet,
    ServiceViewSet,
    StockOverviewView,
)

# -------------------------------------------------
# Workflow
# -------------------------------------------------
from .views_workflow_api import (
    BoxHistoryView,
    BoxResetView,
    BoxResterilizeView,
    RecentActivityView,
    WorkflowAdvanceView,
    WorkflowDefinitionView,
    WorkflowScanView,
)

# -------------------------------------------------
# Assignments
# -------------------------------------------------
from .views_assignments import (
    AssignmentListCreateView,
    AssignmentReturnView,
    AssignmentStartUseView,
)

# -------------------------------------------------
# Identity
# -------------------------------------------------
from .views_identity import WhoAmIView


app_name = "sterilization"

router = DefaultRouter()
router.register(r"boxes", InstrumentBoxViewSet, basename="box")
router.register(r"services", ServiceViewSet, basename="service")


urlpatterns = [
    # ============================================================
    # System
    # ============================================================
    path("health/", HealthCheckView.as_view(), name="health_check"),
    path("whoami/", WhoAmIView.as_view(), name="whoami"),

    # ============================================================
    # Per-box workflow actions
    # ============================================================
    path("boxes/<int:pk>/history/", BoxHistoryView.as_view(), name="box-history"),
    path("boxes/<int:pk>/reset/", BoxResetView.as_view(), name="box-reset"),
    path("boxes/<int:pk>/resterilize/", BoxResterilizeView.as_view(), name="box-resterilize"),

    # ============================================================
    # Scanning workflow
    # ============================================================
    path("workflow/definition/", WorkflowDefinitionView.as_view(), name="workflow-definition"),
    path("workflow/scan/", WorkflowScanView.as_view(), name="workflow-scan"),
    path("workflow/advance/", WorkflowAdvanceView.as_view(), name="workflow-advance"),
    path("workflow/activity/", RecentActivityView.as_view(), name="workflow-activity"),

    # ============================================================
    # Assignments
    # ============================================================
    path("assignments/", AssignmentListCreateView.as_view(), name="assignment-list"),
    path("assignments/<int:pk>/start-use/", AssignmentStartUseView.as_view(), name="assignment-start-use"),
    path("assignments/<int:pk>/return/", AssignmentReturnView.as_view(), name="assignment-return"),

    # ============================================================
    # Dashboards
    # ============================================================
    path("stock/", StockOverviewView.as_view(), name="stock-overview"),
    path("expiring/", ExpiringBoxesView.as_view(), name="expiring-boxes"),

    # ============================================================
    # CRUD (router)
    # ============================================================
    path("", include(router.urls)),
]
