from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from .config import settings
from .logging_context import set_user_context
from .repositories import profiles as profiles_repo
from .utils.supabase_jwt import SupabaseJwtError, verify_supabase_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token")
oauth2_optional_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token", auto_error=False)


def decode_jwt(token: str) -> dict[str, Any]:
    """Decode a token signed with the project's shared HS256 secret."""
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={"verify_aud": False},
    )


def _supabase_jwks_url() -> str | None:
    if settings.supabase_jwks_url:
        return str(settings.supabase_jwks_url)
    if settings.supabase_url is None:
        return None
    base = settings.supabase_url.unicode_string().rstrip("/")
    return f"{base}/auth/v1/.well-known/jwks.json"


def _supabase_jwt_issuer() -> str | None:
    if settings.supabase_jwt_issuer:
        return settings.supabase_jwt_issuer
    if settings.supabase_url is None:
        return None
    base = settings.supabase_url.unicode_string().rstrip("/")
    return f"{base}/auth/v1"


def decode_access_token(token: str) -> dict[str, Any]:
    try:
        return decode_jwt(token)
    except JWTError as exc:
        jwks_url = _supabase_jwks_url()
        if not jwks_url:
            raise exc
        try:
            return verify_supabase_access_token(
                token, jwks_url=jwks_url, issuer=_supabase_jwt_issuer()
            )
        except SupabaseJwtError as sup_exc:
            raise JWTError("Supabase JWT verification failed") from sup_exc


def _normalize_user(row: dict[str, Any]) -> dict[str, Any]:
    data = dict(row)
    data["role"] = data.get("role") or "student"
    data["is_admin"] = data["role"] == "admin"
    return data


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        raise credentials_exception from exc
    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    row = await profiles_repo.get_user(user_id)
    if not row:
        raise credentials_exception
    set_user_context(str(row["id"]))
    return _normalize_user(row)


async def get_optional_user(
    token: Annotated[str | None, Depends(oauth2_optional_scheme)],
):
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None

    row = await profiles_repo.get_user(user_id)
    if not row:
        return None
    set_user_context(str(row["id"]))
    return _normalize_user(row)


CurrentUser = Annotated[dict, Depends(get_current_user)]
OptionalCurrentUser = Annotated[dict | None, Depends(get_optional_user)]
