"""
Reports app URL configuration.

Included in the project-level ``urls.py`` as::

    path('api/', include('reports.urls')),

Endpoint Map
------------
    GET    /reports/                           → list (role-scoped)
    POST   /reports/                           → create
    GET    /reports/{id}/                      → retrieve
    POST   /reports/{id}/approve/              → approve
    POST   /reports/{id}/reject/               → reject
    POST   /reports/{id}/status/               → change_status
    POST   /reports/{id}/category/             → change_category
    POST   /reports/{id}/delegate/             → delegate
    POST   /reports/{id}/revoke/               → revoke
    GET    /reports/{id}/eligible-companies/   → eligible_companies
    GET    /reports/{id}/audit-log/            → audit_log
    GET    /reports/{id}/capabilities/         → capabilities
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ReportViewSet

app_name = "reports"

router = DefaultRouter()
router.register(r"reports", ReportViewSet, basename="report")

urlpatterns = [
    path("", include(router.urls)),
]
