from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Role, User


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ("name", "description")
    search_fields = ("name",)
    ordering = ("name",)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "first_name", "last_name",
                    "is_active", "role")
    search_fields = ("username", "email", "first_name", "last_name")
    list_filter = ("is_active", "is_staff", "role", "roles")
    filter_horizontal = ("groups", "user_permissions", "roles")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Roles", {"fields": ("roles", "role")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Roles", {"fields": ("email", "first_name", "last_name", "roles", "role")}),
    )
