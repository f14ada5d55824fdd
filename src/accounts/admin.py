"""Admin configuration for accounts app."""

from unfold.admin import ModelAdmin
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import action, display

from django.contrib import admin, messages
from django.contrib.admin.models import CHANGE, LogEntry
from django.contrib.auth.admin import UserAdmin
from django.contrib.contenttypes.models import ContentType

from .forms import CustomUserChangeForm, CustomUserCreationForm
from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin, ModelAdmin):
    add_form = CustomUserCreationForm
    form = CustomUserChangeForm
    model = CustomUser
    ordering = ["name", "email"]
    list_display = [
        "display_user",
        "display_role",
        "department",
        "sub_department",
        "display_active",
    ]
    list_filter = [
        ("role", ChoicesDropdownFilter),
        ("department", RelatedDropdownFilter),
        "is_active",
        "is_superuser",
    ]
    search_fields = ["email", "name"]
    fieldsets = (
        (
            "Profile",
            {
                "classes": ["tab"],
                "fields": (
                    "email",
                    "password",
                    "name",
                    "role",
                    "department",
                    "sub_department",
                ),
            },
        ),
        (
            "Permissions",
            {
                "classes": ["tab"],
                "fields": ("is_active", "is_staff", "is_superuser"),
            },
        ),
        (
            "Activity",
            {
                "classes": ["tab"],
                "fields": ("last_login", "date_joined"),
            },
        ),
    )
    readonly_fields = ["last_login", "date_joined"]
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": (
                    "email",
                    "name",
                    "role",
                    "department",
                    "sub_department",
                    "password1",
                    "password2",
                ),
            },
        ),
    )

    @display(description="User", header=True, ordering="name")
    def display_user(self, obj):
        return obj.get_display_name(), obj.email

    @display(
        description="Role",
        ordering="role",
        label={
            CustomUser.ROLE_ADMIN: "danger",
            CustomUser.ROLE_MANAGER: "warning",
            CustomUser.ROLE_STAFF: "info",
            CustomUser.ROLE_VIEWER: "default",
        },
    )
    def display_role(self, obj):
        return obj.role

    @display(description="Active", boolean=True)
    def display_active(self, obj):
        return obj.is_active

    actions = ["activate_users", "deactivate_users"]

    def _log_change(self, request, user, message):
        """Create a LogEntry for a bulk action change."""
        ct = ContentType.objects.get_for_model(user)
        LogEntry.objects.create(
            user_id=request.user.pk,
            content_type_id=ct.pk,
            object_id=str(user.pk),
            object_repr=str(user),
            action_flag=CHANGE,
            change_message=message,
        )

    def _set_active(self, request, queryset, is_active):
        changed = 0
        for user in queryset.exclude(is_active=is_active):
            user.is_active = is_active
            user.save(update_fields=["is_active"])
            self._log_change(
                request,
                user,
                "Activated via bulk action"
                if is_active
                else "Deactivated via bulk action",
            )
            changed += 1
        messages.success(request, f"{changed} user(s) updated.")

    @action(description="Activate selected users")
    def activate_users(self, request, queryset):
        self._set_active(request, queryset, True)

    @action(description="Deactivate selected users")
    def deactivate_users(self, request, queryset):
        self._set_active(request, queryset.exclude(pk=request.user.pk), False)
