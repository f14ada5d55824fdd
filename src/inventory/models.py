"""Models for Stockroom inventory and lending."""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class Department(models.Model):
    """Organisational unit that borrow requests and users belong to."""

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class SubDepartment(models.Model):
    """Named subdivision belonging to exactly one department."""

    department = models.ForeignKey(
        Department,
        on_delete=models.CASCADE,
        related_name="sub_departments",
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["department", "name"],
                name="unique_sub_department_per_department",
            ),
        ]

    def __str__(self):
        return f"{self.department.name} / {self.name}"


class InventoryItem(models.Model):
    """Individual piece of equipment that can be borrowed."""

    STATUS_CHOICES = [
        ("available", "Available"),
        ("borrowed", "Borrowed"),
        ("maintenance", "Maintenance"),
        ("retired", "Retired"),
    ]

    CONDITION_CHOICES = [
        ("excellent", "Excellent"),
        ("good", "Good"),
        ("fair", "Fair"),
        ("poor", "Poor"),
    ]

    name = models.CharField(max_length=200)
    description = models.TextField()
    category = models.CharField(max_length=100)
    serial_number = models.CharField(max_length=100, blank=True)
    condition = models.CharField(
        max_length=20, choices=CONDITION_CHOICES, default="good"
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="available"
    )
    location = models.CharField(max_length=200)
    purchase_date = models.DateField(null=True, blank=True)
    purchase_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    photo_url = models.CharField(max_length=500, blank=True)
    photo_file_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Storage name of the photo, used to delete it",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="idx_item_status"),
            models.Index(fields=["category"], name="idx_item_category"),
        ]

    def __str__(self):
        if self.serial_number:
            return f"{self.name} ({self.serial_number})"
        return self.name


class BorrowRequest(models.Model):
    """A user's request to take custody of an item for a bounded period.

    ``overdue`` is never stored; see ``services.state.is_overdue``.
    """

    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("approved", "Approved"),
        ("rejected", "Rejected"),
        ("active", "Active"),
        ("returned", "Returned"),
    ]

    item = models.ForeignKey(
        InventoryItem,
        on_delete=models.CASCADE,
        related_name="requests",
    )
    borrower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="borrow_requests",
    )
    # Request history keeps its department id after the department is
    # deleted.
    department = models.ForeignKey(
        Department,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="requests",
    )
    sub_department = models.ForeignKey(
        SubDepartment,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="requests",
    )
    requested_date = models.DateTimeField(default=timezone.now)
    expected_return_date = models.DateTimeField()
    actual_return_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="pending"
    )
    purpose = models.TextField()
    notes = models.TextField(blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_requests",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    return_condition = models.CharField(
        max_length=20,
        choices=InventoryItem.CONDITION_CHOICES,
        blank=True,
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_request_status"),
            models.Index(
                fields=["expected_return_date"],
                name="idx_request_expected_return",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["item"],
                condition=models.Q(status="active"),
                name="unique_active_request_per_item",
            ),
        ]

    def __str__(self):
        return f"{self.item} - {self.get_status_display()} ({self.borrower})"

    def clean(self):
        super().clean()
        if not (self.purpose or "").strip():
            raise ValidationError({"purpose": "Purpose is required."})
        if self.sub_department_id and self.department_id:
            parent_id = (
                SubDepartment.objects.filter(pk=self.sub_department_id)
                .values_list("department_id", flat=True)
                .first()
            )
            if parent_id is not None and parent_id != self.department_id:
                raise ValidationError(
                    {
                        "sub_department": "Sub-department does not belong "
                        "to the selected department."
                    }
                )

    def display_status(self, now=None):
        """Status as shown to users, with the overdue overlay."""
        from .services.state import display_status

        return display_status(self.status, self.expected_return_date, now)

    @property
    def is_overdue(self):
        from .services.state import is_overdue

        return is_overdue(self.status, self.expected_return_date)


class AuditLog(models.Model):
    """Immutable record of every mutating action."""

    ENTITY_CHOICES = [
        ("item", "Item"),
        ("request", "Request"),
        ("user", "User"),
        ("department", "Department"),
        ("sub_department", "Sub-department"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
        help_text="The user who performed the action",
    )
    action = models.CharField(max_length=50)
    entity_type = models.CharField(max_length=20, choices=ENTITY_CHOICES)
    entity_id = models.CharField(max_length=50)
    details = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["timestamp", "pk"]
        indexes = [
            models.Index(fields=["timestamp"], name="idx_auditlog_timestamp"),
            models.Index(
                fields=["entity_type", "entity_id"],
                name="idx_auditlog_entity",
            ),
        ]

    def __str__(self):
        return (
            f"{self.action} {self.entity_type}#{self.entity_id} "
            f"by {self.user}"
        )

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(
                "Audit log entries are immutable and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Audit log entries are immutable and cannot be deleted."
        )
