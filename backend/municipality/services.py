"""
Municipality app service layer.

Read-only lookups over the collaborator tables: category → technical
office, company → served categories and maintainer roster.  The reports
app resolves every office, company and maintainer through here.
"""

from __future__ import annotations

from django.db.models import QuerySet

from core.domain.exceptions import NotFound

from .models import Company, ProblemCategory, TechnicalOffice


class CategoryService:
    """Problem categories and their technical-office mapping."""

    @staticmethod
    def list_categories() -> QuerySet[ProblemCategory]:
        return ProblemCategory.objects.select_related("technical_office").order_by("name")

    @staticmethod
    def get_category(category_id: int) -> ProblemCategory:
        """
        Raises
        ------
        NotFound
            If no category with ``category_id`` exists.
        """
        try:
            return ProblemCategory.objects.select_related("technical_office").get(pk=category_id)
        except ProblemCategory.DoesNotExist:
            raise NotFound(f"Problem category with id {category_id} not found.")

    @staticmethod
    def resolve_technical_office(category: ProblemCategory) -> TechnicalOffice | None:
        """Return the office responsible for ``category``, if one is mapped."""
        return category.technical_office


class CompanyService:
    """External companies, the categories they serve and their rosters."""

    @staticmethod
    def get_company(company_id: int) -> Company:
        """
        Raises
        ------
        NotFound
            If no company with ``company_id`` exists.
        """
        try:
            return Company.objects.get(pk=company_id)
        except Company.DoesNotExist:
            raise NotFound(f"Company with id {company_id} not found.")

    @staticmethod
    def serves_category(company: Company, category_id: int) -> bool:
        return company.categories.filter(pk=category_id).exists()

    @staticmethod
    def companies_for_category(category_id: int) -> QuerySet[Company]:
        """Companies that accept work in the given category, by name."""
        return Company.objects.filter(categories__pk=category_id).distinct().order_by("name")
