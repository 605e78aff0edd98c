"""
Reports app serializers.

Contains the Request and Response serializers for the Reports API.
Serializers handle field definitions, read/write constraints, and
field-level validation only.  **No workflow transitions live here** —
those belong in ``services.py``.

Structure
---------
1. Filter / query-param serializers
2. Report read serializers (list, detail)
3. Report write serializers (create)
4. Workflow action serializers (reject, status, delegate, category)
5. Sub-resource serializers (audit log, capabilities)
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from core.constants import MAX_REPORT_PHOTOS, MIN_REPORT_PHOTOS
from municipality.serializers import CompanySerializer, TechnicalOfficeSerializer

from .models import Report, ReportAuditLog, ReportStatus


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class ReportFilterSerializer(serializers.Serializer):
    """
    Validates query-parameter filters for ``GET /api/reports/``.

    Query Parameters
    ----------------
    ``status``   : str — one of ``ReportStatus`` values
    ``category`` : int — PK of a problem category
    """

    status = serializers.ChoiceField(choices=ReportStatus.choices, required=False)
    category = serializers.IntegerField(required=False, min_value=1)


# ═══════════════════════════════════════════════════════════════════
#  2. Report Read Serializers
# ═══════════════════════════════════════════════════════════════════


class _ReporterMixin:
    """Hide the reporter of an anonymous report from everyone but the reporter."""

    def get_reporter(self, obj: Report) -> dict[str, Any] | None:
        request = self.context.get("request")
        viewer_id = getattr(getattr(request, "user", None), "pk", None)
        if obj.anonymous and obj.reporter_id != viewer_id:
            return None
        return UserSummarySerializer(obj.reporter).data


class ReportListSerializer(_ReporterMixin, serializers.ModelSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    reporter = serializers.SerializerMethodField()
    is_delegated = serializers.BooleanField(read_only=True)

    class Meta:
        model = Report
        fields = [
            "id",
            "title",
            "category",
            "category_name",
            "status",
            "status_display",
            "anonymous",
            "reporter",
            "assignee",
            "is_delegated",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReportDetailSerializer(_ReporterMixin, serializers.ModelSerializer):
    """
    Full report representation returned by retrieve, create and every
    workflow action.  ``version`` must be echoed back as
    ``expected_version`` to get optimistic-concurrency protection.
    """

    category_name = serializers.CharField(source="category.name", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    reporter = serializers.SerializerMethodField()
    assignee = UserSummarySerializer(read_only=True, allow_null=True)
    technical_office = TechnicalOfficeSerializer(read_only=True, allow_null=True)
    company = CompanySerializer(read_only=True, allow_null=True)
    external_maintainer = UserSummarySerializer(read_only=True, allow_null=True)
    is_delegated = serializers.BooleanField(read_only=True)

    class Meta:
        model = Report
        fields = [
            "id",
            "title",
            "description",
            "category",
            "category_name",
            "latitude",
            "longitude",
            "address",
            "anonymous",
            "photos",
            "status",
            "status_display",
            "rejection_reason",
            "reporter",
            "assignee",
            "technical_office",
            "company",
            "external_maintainer",
            "is_delegated",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  3. Report Write Serializers
# ═══════════════════════════════════════════════════════════════════


class ReportCreateSerializer(serializers.Serializer):
    """
    Validates a citizen's new report.

    ``category`` is a PK; whether it exists is checked by the service
    layer so an unknown category surfaces as 404.
    """

    category = serializers.IntegerField(min_value=1)
    title = serializers.CharField(max_length=255)
    description = serializers.CharField()
    latitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, min_value=-90, max_value=90,
    )
    longitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, min_value=-180, max_value=180,
    )
    address = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    anonymous = serializers.BooleanField(required=False, default=False)
    photos = serializers.ListField(
        child=serializers.URLField(max_length=500),
        min_length=MIN_REPORT_PHOTOS,
        max_length=MAX_REPORT_PHOTOS,
        help_text=f"{MIN_REPORT_PHOTOS} to {MAX_REPORT_PHOTOS} photo URLs, in display order.",
    )

    def validate_title(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title cannot be blank.")
        return value

    def validate_description(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Description cannot be blank.")
        return value


# ═══════════════════════════════════════════════════════════════════
#  4. Workflow Action Serializers
# ═══════════════════════════════════════════════════════════════════


class VersionedActionSerializer(serializers.Serializer):
    """
    Base for every workflow action body.

    ``expected_version`` is optional; when sent, the action fails with
    ``concurrent_modification`` if the report moved on since the client
    last read it.
    """

    expected_version = serializers.IntegerField(required=False, min_value=1)


class ReportRejectSerializer(VersionedActionSerializer):
    # Blank reasons are let through so the service can answer with
    # ``missing_rejection_reason``.
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class ReportStatusChangeSerializer(VersionedActionSerializer):
    status = serializers.ChoiceField(choices=ReportStatus.choices)


class ReportDelegateSerializer(VersionedActionSerializer):
    company = serializers.IntegerField(min_value=1, help_text="PK of the company to delegate to.")


class ReportCategoryChangeSerializer(VersionedActionSerializer):
    category = serializers.IntegerField(min_value=1)


# ═══════════════════════════════════════════════════════════════════
#  5. Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class ReportAuditLogSerializer(serializers.ModelSerializer):
    actor = UserSummarySerializer(read_only=True, allow_null=True)

    class Meta:
        model = ReportAuditLog
        fields = ["id", "action", "from_status", "to_status", "actor", "message", "created_at"]
        read_only_fields = fields


class ReportCapabilitiesSerializer(serializers.Serializer):
    report_id = serializers.IntegerField(read_only=True)
    version = serializers.IntegerField(read_only=True)
    capabilities = serializers.ListField(child=serializers.CharField(), read_only=True)
    status_targets = serializers.ListField(child=serializers.CharField(), read_only=True)
