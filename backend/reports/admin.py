from django.contrib import admin

from .models import Report, ReportAuditLog


class ReportAuditLogInline(admin.TabularInline):
    model = ReportAuditLog
    extra = 0
    can_delete = False
    readonly_fields = ("action", "from_status", "to_status", "actor", "message", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    """
    Read-mostly admin: workflow fields change only through the service
    layer, and reports are never deleted.
    """

    list_display = ("id", "title", "status", "category", "assignee", "company", "created_at")
    list_filter = ("status", "category", "anonymous")
    search_fields = ("title", "description")
    readonly_fields = (
        "reporter", "status", "assignee", "technical_office", "company",
        "external_maintainer", "rejection_reason", "version",
        "created_at", "updated_at",
    )
    inlines = [ReportAuditLogInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ReportAuditLog)
class ReportAuditLogAdmin(admin.ModelAdmin):
    list_display = ("report", "action", "from_status", "to_status", "actor", "created_at")
    list_filter = ("action", "to_status")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
