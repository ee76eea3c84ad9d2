"""Current-user resolution.

Sign-in state lives outside this package; callers inject a provider that
returns the signed-in user's id, or None when nobody is signed in.
"""

from collections.abc import Callable

from blast.domain.errors import AuthenticationRequired

CurrentUserProvider = Callable[[], str | None]


def static_user(user_id: str | None) -> CurrentUserProvider:
    """Provider that always reports the same user (or nobody)."""
    return lambda: user_id


def require_user(provider: CurrentUserProvider) -> str:
    """Return the signed-in user's id.

    Raises:
        AuthenticationRequired: If nobody is signed in
    """
    user_id = provider()
    if not user_id:
        raise AuthenticationRequired("User not authenticated")
    return user_id
