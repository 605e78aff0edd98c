"""
Reports app views.

Architecture: Views are intentionally **thin**.  Every view follows the
three-step pattern:

  1. Parse & validate request data via a serializer.
  2. Delegate all business logic to the appropriate service class.
  3. Serialize the result and return a DRF ``Response``.

Custom @action methods handle the workflow transitions, delegation and
the read-only sub-resources (audit log, capabilities).
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from municipality.serializers import CompanySerializer

from .serializers import (
    ReportAuditLogSerializer,
    ReportCapabilitiesSerializer,
    ReportCategoryChangeSerializer,
    ReportCreateSerializer,
    ReportDelegateSerializer,
    ReportDetailSerializer,
    ReportFilterSerializer,
    ReportListSerializer,
    ReportRejectSerializer,
    ReportStatusChangeSerializer,
    VersionedActionSerializer,
)
from .services import (
    DelegationService,
    ReportCreationService,
    ReportQueryService,
    ReportWorkflowService,
)

_WORKFLOW_ERRORS = {
    403: OpenApiResponse(description="The active role lacks the capability."),
    404: OpenApiResponse(description="Report not found."),
    409: OpenApiResponse(description="Invalid transition, terminal report, or concurrent modification."),
}


class ReportViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the reports app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined; there is no update or delete endpoint because
    reports only change through workflow actions and are never deleted.

    Permission Strategy
    -------------------
    The base permission is ``IsAuthenticated``.  Role and ownership checks
    are enforced exclusively inside the service layer.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def _detail(self, request: Request, report) -> Response:
        serializer = ReportDetailSerializer(report, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    # ── Standard endpoints ───────────────────────────────────────────
    @extend_schema(
        summary="List reports",
        description=(
            "Reports visible to the caller's active role: citizens see their own, "
            "officers and admins see all, technicians their assignments and "
            "external maintainers their delegations."
        ),
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Filter by status."),
            OpenApiParameter(name="category", type=int, location=OpenApiParameter.QUERY, description="Filter by category PK."),
        ],
        responses={200: OpenApiResponse(response=ReportListSerializer(many=True), description="Reports.")},
        tags=["Reports"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = ReportFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)

        qs = ReportQueryService.get_filtered_queryset(request.user, filter_serializer.validated_data)
        serializer = ReportListSerializer(qs, many=True, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Submit a report",
        request=ReportCreateSerializer,
        responses={
            201: OpenApiResponse(response=ReportDetailSerializer, description="Report created in pending_approval."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Active role is not citizen."),
            404: OpenApiResponse(description="Unknown category."),
        },
        tags=["Reports"],
    )
    def create(self, request: Request) -> Response:
        serializer = ReportCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = ReportCreationService.create_report(request.user, serializer.validated_data)
        out = ReportDetailSerializer(report, context={"request": request})
        return Response(out.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve a report",
        responses={
            200: OpenApiResponse(response=ReportDetailSerializer, description="Report detail."),
            404: OpenApiResponse(description="Not found or not visible to the caller."),
        },
        tags=["Reports"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        report = ReportQueryService.get_report_for_user(request.user, int(pk))
        return self._detail(request, report)

    # ── Workflow @actions ─────────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="approve")
    @extend_schema(
        summary="Approve a pending report",
        description="Assigns the report to the least-loaded technician of its category's office.",
        request=VersionedActionSerializer,
        responses={200: OpenApiResponse(response=ReportDetailSerializer, description="Approved."), **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    def approve(self, request: Request, pk: int = None) -> Response:
        serializer = VersionedActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = ReportWorkflowService.approve(
            request.user,
            int(pk),
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._detail(request, report)

    @action(detail=True, methods=["post"], url_path="reject")
    @extend_schema(
        summary="Reject a pending report",
        request=ReportRejectSerializer,
        responses={
            200: OpenApiResponse(response=ReportDetailSerializer, description="Rejected."),
            400: OpenApiResponse(description="Missing rejection reason."),
            **_WORKFLOW_ERRORS,
        },
        tags=["Reports – Workflow"],
    )
    def reject(self, request: Request, pk: int = None) -> Response:
        serializer = ReportRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = ReportWorkflowService.reject(
            request.user,
            int(pk),
            serializer.validated_data["reason"],
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._detail(request, report)

    @action(detail=True, methods=["post"], url_path="status")
    @extend_schema(
        summary="Change report status",
        request=ReportStatusChangeSerializer,
        responses={200: OpenApiResponse(response=ReportDetailSerializer, description="Status changed."), **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    def change_status(self, request: Request, pk: int = None) -> Response:
        serializer = ReportStatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = ReportWorkflowService.change_status(
            request.user,
            int(pk),
            serializer.validated_data["status"],
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._detail(request, report)

    @action(detail=True, methods=["post"], url_path="category")
    @extend_schema(
        summary="Change the category of a pending report",
        request=ReportCategoryChangeSerializer,
        responses={200: OpenApiResponse(response=ReportDetailSerializer, description="Category changed."), **_WORKFLOW_ERRORS},
        tags=["Reports – Workflow"],
    )
    def change_category(self, request: Request, pk: int = None) -> Response:
        serializer = ReportCategoryChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = ReportWorkflowService.update_category(
            request.user,
            int(pk),
            serializer.validated_data["category"],
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._detail(request, report)

    # ── Delegation @actions ───────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="delegate")
    @extend_schema(
        summary="Delegate to an external company",
        request=ReportDelegateSerializer,
        responses={200: OpenApiResponse(response=ReportDetailSerializer, description="Delegated."), **_WORKFLOW_ERRORS},
        tags=["Reports – Delegation"],
    )
    def delegate(self, request: Request, pk: int = None) -> Response:
        serializer = ReportDelegateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = DelegationService.delegate(
            request.user,
            int(pk),
            serializer.validated_data["company"],
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._detail(request, report)

    @action(detail=True, methods=["post"], url_path="revoke")
    @extend_schema(
        summary="Revoke the delegation",
        request=VersionedActionSerializer,
        responses={200: OpenApiResponse(response=ReportDetailSerializer, description="Delegation revoked."), **_WORKFLOW_ERRORS},
        tags=["Reports – Delegation"],
    )
    def revoke(self, request: Request, pk: int = None) -> Response:
        serializer = VersionedActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = DelegationService.revoke(
            request.user,
            int(pk),
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._detail(request, report)

    @action(detail=True, methods=["get"], url_path="eligible-companies")
    @extend_schema(
        summary="Companies the report can be delegated to",
        responses={200: OpenApiResponse(response=CompanySerializer(many=True), description="Companies.")},
        tags=["Reports – Delegation"],
    )
    def eligible_companies(self, request: Request, pk: int = None) -> Response:
        companies = DelegationService.list_eligible_companies(request.user, int(pk))
        return Response(CompanySerializer(companies, many=True).data, status=status.HTTP_200_OK)

    # ── Sub-resource @actions ─────────────────────────────────────────

    @action(detail=True, methods=["get"], url_path="audit-log")
    @extend_schema(
        summary="Report audit trail",
        responses={200: OpenApiResponse(response=ReportAuditLogSerializer(many=True), description="Audit rows, oldest first.")},
        tags=["Reports"],
    )
    def audit_log(self, request: Request, pk: int = None) -> Response:
        logs = ReportQueryService.get_audit_log(request.user, int(pk))
        return Response(ReportAuditLogSerializer(logs, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="capabilities")
    @extend_schema(
        summary="Caller's capabilities on the report",
        responses={200: OpenApiResponse(response=ReportCapabilitiesSerializer, description="Capabilities.")},
        tags=["Reports"],
    )
    def capabilities(self, request: Request, pk: int = None) -> Response:
        data = ReportQueryService.get_capabilities(request.user, int(pk))
        return Response(ReportCapabilitiesSerializer(data).data, status=status.HTTP_200_OK)
