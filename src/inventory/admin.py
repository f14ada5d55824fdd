"""Admin configuration for inventory app using django-unfold."""

from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import display

from django.contrib import admin
from django.db.models import Count

from .forms import InventoryItemAdminForm
from .models import (
    AuditLog,
    BorrowRequest,
    Department,
    InventoryItem,
    SubDepartment,
)


class SubDepartmentInline(TabularInline):
    model = SubDepartment
    extra = 1
    fields = ["name", "description"]


@admin.register(Department)
class DepartmentAdmin(ModelAdmin):
    list_display = ["name", "sub_department_count", "created_at"]
    search_fields = ["name", "description"]
    inlines = [SubDepartmentInline]

    def get_queryset(self, request):
        return (
            super()
            .get_queryset(request)
            .annotate(_sub_department_count=Count("sub_departments"))
        )

    @display(description="Sub-departments", ordering="_sub_department_count")
    def sub_department_count(self, obj):
        return obj._sub_department_count


@admin.register(SubDepartment)
class SubDepartmentAdmin(ModelAdmin):
    list_display = ["name", "department", "created_at"]
    list_filter = [("department", RelatedDropdownFilter)]
    search_fields = ["name", "department__name"]


@admin.register(InventoryItem)
class InventoryItemAdmin(ModelAdmin):
    form = InventoryItemAdminForm
    list_display = [
        "name",
        "category",
        "serial_number",
        "display_status",
        "condition",
        "location",
        "purchase_price",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("condition", ChoicesDropdownFilter),
        "category",
    ]
    search_fields = ["name", "description", "serial_number", "category"]
    readonly_fields = ["photo_file_id", "created_at", "updated_at"]

    @display(
        description="Status",
        ordering="status",
        label={
            "available": "success",
            "borrowed": "warning",
            "maintenance": "info",
            "retired": "danger",
        },
    )
    def display_status(self, obj):
        return obj.status


@admin.register(BorrowRequest)
class BorrowRequestAdmin(ModelAdmin):
    list_display = [
        "item",
        "borrower",
        "display_status",
        "expected_return_date",
        "approved_by",
        "created_at",
    ]
    list_filter = [("status", ChoicesDropdownFilter)]
    search_fields = ["item__name", "borrower__name", "purpose"]
    date_hierarchy = "created_at"
    raw_id_fields = ["item", "borrower", "approved_by"]

    @display(
        description="Status",
        label={
            "pending": "info",
            "active": "success",
            "overdue": "danger",
            "rejected": "default",
            "returned": "default",
            "approved": "default",
        },
    )
    def display_status(self, obj):
        return obj.display_status()


@admin.register(AuditLog)
class AuditLogAdmin(ModelAdmin):
    list_display = [
        "timestamp",
        "user",
        "action",
        "entity_type",
        "entity_id",
    ]
    list_filter = [("entity_type", ChoicesDropdownFilter)]
    search_fields = ["action", "entity_id", "user__email"]
    date_hierarchy = "timestamp"
    readonly_fields = [
        "user",
        "action",
        "entity_type",
        "entity_id",
        "details",
        "timestamp",
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
