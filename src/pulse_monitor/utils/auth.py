import os
from fastapi import Header, HTTPException, status


def _load_api_keys() -> set[str]:
    raw = os.getenv("PM_API_KEYS", "").strip()
    if not raw:
        return set()
    return {k.strip() for k in raw.split(",") if k.strip()}


def validate_token_or_key(token: str | None, api_key: str | None) -> None:
    """Raise 401 unless `token` or `api_key` is accepted; no-op when auth is off."""
    expected = os.getenv("PM_API_TOKEN")
    api_keys = _load_api_keys()
    if not expected and not api_keys:
        return None

    if expected and token == expected:
        return None
    if api_keys and api_key and api_key in api_keys:
        return None

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_token(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
):
    bearer = None
    if authorization and authorization.lower().startswith("bearer "):
        bearer = authorization.split(" ", 1)[1].strip()
    return validate_token_or_key(bearer, x_api_key)
