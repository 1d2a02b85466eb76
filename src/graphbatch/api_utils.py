"""API utils"""

import os

ACCESS_TOKEN_ENV = "GRAPHBATCH_ACCESS_TOKEN"
APP_SECRET_ENV = "GRAPHBATCH_APP_SECRET"
API_VERSION_ENV = "GRAPHBATCH_API_VERSION"


def _getenv(name: str) -> str | None:
    value = os.getenv(name)
    return value or None


def get_default_access_token() -> str | None:
    return _getenv(ACCESS_TOKEN_ENV)


def get_default_app_secret() -> str | None:
    return _getenv(APP_SECRET_ENV)


def get_default_api_version() -> str | None:
    return _getenv(API_VERSION_ENV)


def require_access_token(access_token: str | None) -> str:
    """Return ``access_token`` or the environment default, failing when neither is set."""
    access_token = access_token or get_default_access_token()
    if not access_token:
        raise ValueError(
            f"Access token not found. Either set {ACCESS_TOKEN_ENV} in the environment variables or provide it through the access_token parameter."
        )
    return access_token
