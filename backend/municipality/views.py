"""
Municipality app views.

Only the category catalogue is exposed; citizens need it to file a
report.  Offices and companies are managed through the Django admin.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .serializers import ProblemCategorySerializer
from .services import CategoryService


class ProblemCategoryViewSet(viewsets.ViewSet):
    """
    GET /api/municipality/categories/       → list categories
    GET /api/municipality/categories/{id}/  → one category
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    @extend_schema(
        summary="List problem categories",
        responses={200: OpenApiResponse(response=ProblemCategorySerializer(many=True), description="Categories.")},
        tags=["Municipality"],
    )
    def list(self, request: Request) -> Response:
        categories = CategoryService.list_categories()
        return Response(ProblemCategorySerializer(categories, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Retrieve a problem category",
        responses={
            200: OpenApiResponse(response=ProblemCategorySerializer, description="Category."),
            404: OpenApiResponse(description="Not found."),
        },
        tags=["Municipality"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        category = CategoryService.get_category(int(pk))
        return Response(ProblemCategorySerializer(category).data, status=status.HTTP_200_OK)
