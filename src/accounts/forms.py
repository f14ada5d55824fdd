"""Forms for the accounts app."""

from django import forms
from django.contrib.auth.forms import (
    PasswordChangeForm,
    UserChangeForm,
    UserCreationForm,
)
from django.core.exceptions import ValidationError

from .models import CustomUser


class CustomUserCreationForm(UserCreationForm):
    class Meta:
        model = CustomUser
        fields = ("email", "name", "role", "department", "sub_department")


class CustomUserChangeForm(UserChangeForm):
    class Meta:
        model = CustomUser
        fields = ("email", "name", "role", "department", "sub_department")


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(strip=False)


class UserForm(forms.ModelForm):
    """User management payload, used by admins and managers."""

    class Meta:
        model = CustomUser
        fields = (
            "email",
            "name",
            "role",
            "department",
            "sub_department",
            "is_active",
        )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["role"].required = False

    def clean_email(self):
        return self.cleaned_data["email"].strip().lower()

    def clean(self):
        cleaned_data = super().clean()
        if "role" in cleaned_data and not cleaned_data["role"]:
            del cleaned_data["role"]
        # An absent checkbox reads as False; keep the model default
        if "is_active" not in self.data:
            cleaned_data.pop("is_active", None)
        sub_department = cleaned_data.get("sub_department")
        if sub_department is not None:
            if "department" in cleaned_data:
                department_id = getattr(
                    cleaned_data["department"], "pk", None
                )
            else:
                department_id = self.instance.department_id
            if sub_department.department_id != department_id:
                self.add_error(
                    "sub_department",
                    "Sub-department does not belong to the selected "
                    "department.",
                )
        return cleaned_data

    def changes(self):
        if not self.is_valid():
            raise ValidationError(self.errors.as_data())
        return dict(self.cleaned_data)


class JSONPasswordChangeForm(PasswordChangeForm):
    """``PasswordChangeForm`` fed from ``current_password``,
    ``new_password`` and ``confirm_password`` keys."""

    FIELD_MAP = {
        "current_password": "old_password",
        "new_password": "new_password1",
        "confirm_password": "new_password2",
    }

    def __init__(self, user, payload):
        data = {
            field: payload.get(key, "")
            for key, field in self.FIELD_MAP.items()
        }
        super().__init__(user, data)


class PasswordResetForm(forms.Form):
    """Admin/manager reset; a temporary password is generated if blank."""

    password = forms.CharField(required=False, strip=False)
