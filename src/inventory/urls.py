"""URL configuration for the inventory app."""

from django.urls import path

from . import views

app_name = "inventory"

urlpatterns = [
    path("", views.dashboard, name="dashboard"),
    path(
        "admin-dashboard/", views.admin_dashboard, name="admin_dashboard"
    ),
    # Items
    path("items/", views.item_list, name="item_list"),
    path("items/<int:pk>/", views.item_detail, name="item_detail"),
    path("items/<int:pk>/delete/", views.item_delete, name="item_delete"),
    path("items/<int:pk>/photo/", views.item_photo, name="item_photo"),
    # Borrow requests
    path("requests/", views.request_list, name="request_list"),
    path(
        "requests/<int:pk>/approve/",
        views.request_approve,
        name="request_approve",
    ),
    path(
        "requests/<int:pk>/reject/",
        views.request_reject,
        name="request_reject",
    ),
    path(
        "requests/<int:pk>/return/",
        views.request_return,
        name="request_return",
    ),
    # Departments
    path("departments/", views.department_list, name="department_list"),
    path(
        "departments/<int:pk>/delete/",
        views.department_delete,
        name="department_delete",
    ),
    path(
        "departments/<int:pk>/sub-departments/",
        views.sub_department_create,
        name="sub_department_create",
    ),
    path(
        "sub-departments/<int:pk>/delete/",
        views.sub_department_delete,
        name="sub_department_delete",
    ),
    # Reports
    path("reports/", views.report, name="report"),
    path("reports/export/", views.report_export, name="report_export"),
    path("audit-log/", views.audit_log, name="audit_log"),
]
