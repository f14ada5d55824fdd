"""Forms that coerce JSON payloads for the inventory views."""

from django import forms
from django.core.exceptions import ValidationError

from .models import BorrowRequest, Department, InventoryItem, SubDepartment


def bind(form_class, payload, instance=None):
    """Bind ``payload`` to a model form.

    With an ``instance`` the form is partial: only fields present in the
    payload are validated and returned by ``changes()``.
    """
    form = form_class(data=payload, instance=instance)
    if instance is not None:
        for name in list(form.fields):
            if name not in payload:
                del form.fields[name]
    return form


class PayloadFormMixin:
    """Raise instead of returning False so views stay linear."""

    def changes(self):
        if not self.is_valid():
            raise ValidationError(self.errors.as_data())
        return dict(self.cleaned_data)


class ItemForm(PayloadFormMixin, forms.ModelForm):
    class Meta:
        model = InventoryItem
        fields = [
            "name",
            "description",
            "category",
            "serial_number",
            "condition",
            "status",
            "location",
            "purchase_date",
            "purchase_price",
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name in ("condition", "status"):
            self.fields[name].required = False

    def clean(self):
        cleaned_data = super().clean()
        # Blank choices fall back to the model defaults
        for name in ("condition", "status"):
            if name in cleaned_data and not cleaned_data[name]:
                del cleaned_data[name]
        return cleaned_data


class InventoryItemAdminForm(forms.ModelForm):
    """Keeps "borrowed" in step with the item's active request."""

    class Meta:
        model = InventoryItem
        fields = "__all__"

    def clean_status(self):
        status = self.cleaned_data["status"]
        on_loan = (
            self.instance.pk is not None
            and BorrowRequest.objects.filter(
                item_id=self.instance.pk, status="active"
            ).exists()
        )
        if status == "borrowed" and not on_loan:
            raise ValidationError(
                "Only an approved request can mark an item as borrowed."
            )
        if status != "borrowed" and on_loan:
            raise ValidationError(
                "This item is on loan. Process the return first."
            )
        return status


class DepartmentForm(PayloadFormMixin, forms.ModelForm):
    class Meta:
        model = Department
        fields = ["name", "description"]


class SubDepartmentForm(PayloadFormMixin, forms.ModelForm):
    class Meta:
        model = SubDepartment
        fields = ["name", "description"]


class BorrowRequestForm(PayloadFormMixin, forms.Form):
    """Type coercion only; presence and state rules live in lending."""

    item = forms.IntegerField(required=False)
    expected_return_date = forms.DateTimeField(required=False)
    purpose = forms.CharField(required=False)
    department = forms.IntegerField(required=False)
    sub_department = forms.IntegerField(required=False)
    notes = forms.CharField(required=False)


class ReturnForm(PayloadFormMixin, forms.Form):
    return_condition = forms.ChoiceField(
        choices=InventoryItem.CONDITION_CHOICES, required=False
    )

    def clean_return_condition(self):
        return self.cleaned_data.get("return_condition") or "excellent"


class RequestFilterForm(forms.Form):
    search = forms.CharField(required=False)
    status = forms.ChoiceField(
        choices=[("", "All")]
        + BorrowRequest.STATUS_CHOICES
        + [("overdue", "Overdue")],
        required=False,
    )


class ItemFilterForm(forms.Form):
    search = forms.CharField(required=False)
    category = forms.CharField(required=False)
    status = forms.ChoiceField(
        choices=[("", "All")] + InventoryItem.STATUS_CHOICES,
        required=False,
    )
