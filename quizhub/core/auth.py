import enum
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from typing import Dict, FrozenSet
import bcrypt
import jwt
from datetime import datetime, timedelta, timezone
from sqlalchemy.orm import Session
from quizhub.core.config import settings
from quizhub.core.database import get_db
from quizhub.models.orm import Profile

class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"

class Capability(str, enum.Enum):
    TAKE_QUIZ = "take_quiz"
    VIEW_OWN_PROGRESS = "view_own_progress"
    MANAGE_QUIZZES = "manage_quizzes"
    MANAGE_USERS = "manage_users"
    VIEW_REPORTS = "view_reports"

_USER_CAPS = frozenset({Capability.TAKE_QUIZ, Capability.VIEW_OWN_PROGRESS})
ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.USER: _USER_CAPS,
    Role.ADMIN: _USER_CAPS | {Capability.MANAGE_QUIZZES, Capability.MANAGE_USERS, Capability.VIEW_REPORTS},
}

def has_capability(role: Role, cap: Capability) -> bool:
    return cap in ROLE_CAPABILITIES.get(role, frozenset())

class TokenData(BaseModel):
    sub: str
    role: Role

bearer = HTTPBearer(auto_error=False)

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash: return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))

def create_token(user_id: str, role: Role, ttl_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes if ttl_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {"sub": user_id, "role": Role(role).value, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl)).timestamp())}
    return jwt.encode(payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)

def get_current_user(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> TokenData:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = jwt.decode(creds.credentials, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
        return TokenData(sub=payload["sub"], role=Role(payload.get("role", Role.USER.value)))
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

def require_capability(cap: Capability):
    # privileged capabilities use the stored role, so demotion or deletion applies before the token expires
    privileged = cap not in ROLE_CAPABILITIES[Role.USER]
    def checker(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
        if privileged:
            p = db.get(Profile, user.sub)
            if p is None:
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account no longer exists")
            user = TokenData(sub=user.sub, role=Role(p.role))
        if not has_capability(user.role, cap):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user
    return checker
