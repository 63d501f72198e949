from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from practice_backend.auth import jwt_handler
from practice_backend.database import SessionLocal
from practice_backend.models.user import User

security = HTTPBearer()

PROVIDER_ROLE = "professional"


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
    finally:
        db.close()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    # tokens minted before roles were embedded carry no claim
    token_role = payload.get("role")
    if token_role is not None and str(token_role).strip().lower() != (user.role or "").strip().lower():
        raise HTTPException(status_code=403, detail="Token role does not match this account.")
    return user


def get_current_provider(user: User = Depends(get_current_user)) -> User:
    if (user.role or "").strip().lower() != PROVIDER_ROLE:
        raise HTTPException(status_code=403, detail="Only professionals can view the practice schedule.")
    return user


def provider_key(user: User) -> str:
    """Namespace used for a provider's cached data."""
    return str(user.id)
