"""
Messaging app URL configuration.

Nests the message endpoints under the report resource:

    /api/reports/{report_pk}/messages/               → list (?channel=) / post
    /api/reports/{report_pk}/messages/mark-opened/   → advance read marker (@action)
    /api/reports/{report_pk}/messages/unread/        → unread counts (@action)

Router Strategy
---------------
``drf-nested-routers`` (``rest_framework_nested``) generates the
``{report_pk}`` prefix.  The parent router below only declares the
``reports`` prefix for nesting; the report routes themselves are served
by ``reports.urls``.

Included in the top-level ``backend/backend/urls.py`` as::

    path("api/", include("messaging.urls")),
"""

from rest_framework.routers import DefaultRouter
from rest_framework_nested import routers as nested_routers

from reports.views import ReportViewSet

from .views import ReportMessageViewSet

app_name = "messaging"

parent_router = DefaultRouter()
parent_router.register(
    prefix=r"reports",
    viewset=ReportViewSet,
    basename="report",
)

# Parent lookup kwarg → report_pk
messages_router = nested_routers.NestedSimpleRouter(
    parent_router=parent_router,
    parent_prefix=r"reports",
    lookup="report",
)
messages_router.register(
    prefix=r"messages",
    viewset=ReportMessageViewSet,
    basename="report-message",
)

urlpatterns = [
    *messages_router.urls,
]
