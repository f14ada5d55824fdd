"""Custom authentication backend for Stockroom."""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


class EmailBackend(ModelBackend):
    """Authenticate with a case-insensitive email address."""

    def authenticate(self, request, username=None, password=None, **kwargs):
        email = kwargs.get("email", username)
        if email is None or password is None:
            return None

        users = User.objects.filter(email__iexact=email.strip())
        if users.count() != 1:
            # Run the hasher anyway to reduce timing differences
            User().set_password(password)
            return None
        user = users.first()

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
