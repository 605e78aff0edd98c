from django.contrib import admin

from .models import Company, ProblemCategory, TechnicalOffice


@admin.register(TechnicalOffice)
class TechnicalOfficeAdmin(admin.ModelAdmin):
    list_display = ("name", "created_at")
    search_fields = ("name",)
    filter_horizontal = ("staff",)


@admin.register(ProblemCategory)
class ProblemCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "technical_office")
    list_filter = ("technical_office",)
    search_fields = ("name",)


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "email")
    search_fields = ("name", "email")
    filter_horizontal = ("categories", "maintainers")
