import logging
from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session
from sqlalchemy import select
from quizhub.core.auth import Role, TokenData, create_token, get_current_user, hash_password, verify_password
from quizhub.core.config import settings
from quizhub.core.database import get_db
from quizhub.models.orm import Profile

router = APIRouter()
logger = logging.getLogger(__name__)

class Register(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    password: str

class Login(BaseModel):
    email: EmailStr
    password: str

class ProfileUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    avatar_url: str | None = None

class ProfileOut(BaseModel):
    id: str
    email: str
    name: str
    role: Role
    avatar_url: str | None = None

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: ProfileOut

def _out(p: Profile) -> ProfileOut:
    return ProfileOut(id=p.id, email=p.email, name=p.name, role=Role(p.role), avatar_url=p.avatar_url)

def _initial_role(email: str) -> Role:
    # only operator-listed exact addresses; never inferred from the address text
    allowed = {e.strip().lower() for e in settings.BOOTSTRAP_ADMIN_EMAILS}
    return Role.ADMIN if email.lower() in allowed else Role.USER

@router.post("/register", response_model=TokenOut, status_code=201)
def register(payload: Register, db: Session = Depends(get_db)):
    if len(payload.password) < settings.PASSWORD_MIN_LENGTH:
        raise HTTPException(422, f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")
    email = payload.email.lower()
    if db.scalar(select(Profile).where(Profile.email == email)):
        raise HTTPException(409, "Email already registered")
    role = _initial_role(email)
    p = Profile(email=email, name=payload.name, password_hash=hash_password(payload.password), role=role.value)
    db.add(p); db.commit(); db.refresh(p)
    logger.info(f"Registered user {p.id} with role {role.value}")
    return TokenOut(access_token=create_token(p.id, role), user=_out(p))

@router.post("/login", response_model=TokenOut)
def login(payload: Login, db: Session = Depends(get_db)):
    p = db.scalar(select(Profile).where(Profile.email == payload.email.lower()))
    if not p or not verify_password(payload.password, p.password_hash):
        raise HTTPException(401, "Invalid email or password")
    return TokenOut(access_token=create_token(p.id, Role(p.role)), user=_out(p))

@router.get("/me", response_model=ProfileOut)
def me(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    p = db.get(Profile, user.sub)
    if not p: raise HTTPException(404, "Profile not found")
    return _out(p)

@router.put("/me", response_model=ProfileOut)
def update_me(payload: ProfileUpdate, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    p = db.get(Profile, user.sub)
    if not p: raise HTTPException(404, "Profile not found")
    if payload.email is not None:
        email = payload.email.lower()
        if email != p.email and db.scalar(select(Profile).where(Profile.email == email)):
            raise HTTPException(409, "Email already registered")
        p.email = email
    if payload.name is not None: p.name = payload.name
    if payload.avatar_url is not None: p.avatar_url = payload.avatar_url
    p.updated_at = datetime.now(timezone.utc)
    db.commit(); db.refresh(p)
    logger.info(f"Profile {p.id} updated")
    return _out(p)
