from django.contrib import admin
from unfold.admin import ModelAdmin, TabularInline
from unfold.sites import UnfoldAdminSite
from .models import User, Ticket, Message, TicketStatusHistory

# Replace the default admin site header
admin.site.__class__ = UnfoldAdminSite


@admin.register(User)
class UserAdmin(ModelAdmin):
    list_display = ('id', 'email', 'first_name', 'last_name', 'role', 'created_at')
    list_filter = ('role',)
    search_fields = ('email', 'first_name', 'last_name')
    exclude = ('password',)
    readonly_fields = ('created_at', 'last_login_at')


class MessageInline(TabularInline):
    model = Message
    extra = 0
    fields = ('author', 'content', 'created_at')
    readonly_fields = ('author', 'content', 'created_at')
    can_delete = False


class StatusHistoryInline(TabularInline):
    model = TicketStatusHistory
    extra = 0
    fields = ('from_status', 'to_status', 'changed_by', 'created_at')
    readonly_fields = fields
    can_delete = False


@admin.register(Ticket)
class TicketAdmin(ModelAdmin):
    list_display = ('id', 'title', 'status', 'owner', 'agent', 'created_at')
    list_filter = ('status',)
    search_fields = ('title', 'owner__email', 'agent__email')
    # Status and agent only change through the ticket lifecycle endpoints.
    readonly_fields = ('status', 'owner', 'agent', 'created_at', 'updated_at', 'solved_at', 'approved_at', 'closed_at')
    inlines = [MessageInline, StatusHistoryInline]

    def has_add_permission(self, request):
        return False
