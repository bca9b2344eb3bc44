"""Auth helpers for tests: build AuthUser principals and swap them into the app."""

from contextlib import contextmanager
from typing import Optional

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser


def make_user(
    user_id: str = "creator-1",
    *,
    account_type: Optional[str] = "creator",
    is_admin: bool = False,
    role: str = "authenticated",
) -> AuthUser:
    return AuthUser(
        user_id=user_id,
        email=f"{user_id}@example.com",
        role=role,
        account_type=account_type,
        is_admin=is_admin,
    )


def make_brand_user(user_id: str = "brand-1") -> AuthUser:
    return make_user(user_id, account_type="brand")


def make_admin_user(user_id: str = "admin-1") -> AuthUser:
    return make_user(user_id, account_type=None, is_admin=True)


def make_service_user(user_id: str = "store-service") -> AuthUser:
    return make_user(user_id, account_type=None, role="service_role")


@contextmanager
def override_auth(app, user: AuthUser):
    """Authenticate every request inside the block as ``user``."""
    previous = app.dependency_overrides.get(get_current_user)
    app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield
    finally:
        if previous is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = previous
