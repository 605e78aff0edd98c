from django.contrib import admin

from .models import Message, ReadMarker


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "report", "channel", "author", "author_role", "created_at")
    list_filter = ("channel",)
    search_fields = ("content",)
    readonly_fields = ("report", "author", "author_role", "channel", "content", "created_at")

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ReadMarker)
class ReadMarkerAdmin(admin.ModelAdmin):
    list_display = ("user", "report", "channel", "last_read_message", "updated_at")
    list_filter = ("channel",)
