from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from django.db.models import Q

User = get_user_model()


class EmailOrUsernameModelBackend(ModelBackend):
    """
    Log in with username or email address (case-insensitive).
    """
    def authenticate(self, request, username=None, password=None, **kwargs):
        if username is None or password is None:
            return None
        identifier = username.strip()

        # Exact username match wins over a shared email address
        user = User.objects.filter(username__iexact=identifier).first()
        if user is None:
            matches = list(User.objects.filter(Q(email__iexact=identifier))[:2])
            user = matches[0] if len(matches) == 1 else None

        if user is None:
            # Run the default password hasher once to reduce timing attacks
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
