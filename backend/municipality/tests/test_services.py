"""
Unit tests for ``municipality.services``.
"""

from __future__ import annotations

import pytest

from core.domain.exceptions import NotFound
from municipality.models import Company, ProblemCategory, TechnicalOffice
from municipality.services import CategoryService, CompanyService


@pytest.mark.django_db
class TestCategoryService:

    def test_resolves_office_from_category(self):
        office = TechnicalOffice.objects.create(name="Parks Office")
        category = ProblemCategory.objects.create(name="Fallen trees", technical_office=office)
        assert CategoryService.resolve_technical_office(category) == office

    def test_category_without_office(self):
        category = ProblemCategory.objects.create(name="Graffiti")
        assert CategoryService.resolve_technical_office(category) is None

    def test_unknown_category(self):
        with pytest.raises(NotFound):
            CategoryService.get_category(424242)

    def test_categories_are_sorted_by_name(self):
        ProblemCategory.objects.create(name="Waste")
        ProblemCategory.objects.create(name="Lighting")
        names = list(CategoryService.list_categories().values_list("name", flat=True))
        assert names == sorted(names)


@pytest.mark.django_db
class TestCompanyService:

    def test_companies_for_category(self):
        lighting = ProblemCategory.objects.create(name="Lighting")
        waste = ProblemCategory.objects.create(name="Waste")
        bright = Company.objects.create(name="Bright Co")
        bright.categories.set([lighting, waste])
        clean = Company.objects.create(name="Clean Co")
        clean.categories.set([waste])

        assert list(CompanyService.companies_for_category(lighting.pk)) == [bright]
        assert list(CompanyService.companies_for_category(waste.pk)) == [bright, clean]
        assert CompanyService.serves_category(clean, waste.pk)
        assert not CompanyService.serves_category(clean, lighting.pk)

    def test_unknown_company(self):
        with pytest.raises(NotFound):
            CompanyService.get_company(424242)
