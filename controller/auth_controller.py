# auth_controller.py
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from tortoise.exceptions import IntegrityError
from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from helper.ai_logging import ai_info
from helper.config import Settings, get_settings
from helper.error_handling import NotFound, ValidationFailure
from helper.security import create_token, get_current_user_id, hash_password, normalize_role, verify_password
from models.organization import Organization
from models.user import User

router = APIRouter()


class SignupRequest(BaseModel):
    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=1)
    email: str = Field(min_length=3, max_length=255)

class SigninRequest(BaseModel):
    username: str
    password: str

class AuthUser(BaseModel):
    id: int
    username: str
    email: str
    credits: int

class AuthResponse(BaseModel):
    token: str
    user: AuthUser

class VerifiedUser(AuthUser):
    role: Optional[str] = None

class VerifyResponse(BaseModel):
    user: VerifiedUser

class MsgResponse(BaseModel):
    msg: str


def _auth_response(user: User, settings: Settings) -> AuthResponse:
    return AuthResponse(
        token=create_token(user.id, settings),
        user=AuthUser(id=user.id, username=user.username, email=user.email, credits=user.credits),
    )


@router.post("/signup", response_model=AuthResponse)
async def signup(data: SignupRequest, settings: Settings = Depends(get_settings)):
    """Create the account, its default organization, and return a token."""
    if await User.filter(Q(username=data.username) | Q(email=data.email)).exists():
        raise ValidationFailure("User exists")
    try:
        async with in_transaction() as conn:
            user = await User.create(
                username=data.username,
                email=data.email,
                password=hash_password(data.password),
                role="admin",
                using_db=conn,
            )
            await Organization.create(name="Default Org", owner_id=user.id, using_db=conn)
    except IntegrityError:
        # lost a race against a concurrent signup with the same username/email
        raise ValidationFailure("User exists")
    ai_info("auth.signup", {"user_id": user.id})
    return _auth_response(user, settings)


@router.post("/signin", response_model=AuthResponse)
async def signin(data: SigninRequest, settings: Settings = Depends(get_settings)):
    user = await User.get_or_none(username=data.username)
    if user is None or not verify_password(data.password, user.password):
        raise ValidationFailure("Invalid credentials")
    return _auth_response(user, settings)


@router.get("/verify", response_model=VerifyResponse)
async def verify(user_id: int = Depends(get_current_user_id)):
    """Resolve the bearer token to the current user."""
    user = await User.get_or_none(id=user_id)
    if user is None:
        raise NotFound("User not found")
    return VerifyResponse(user=VerifiedUser(
        id=user.id,
        username=user.username,
        email=user.email,
        credits=user.credits,
        role=normalize_role(user.role),
    ))


@router.post("/logout", response_model=MsgResponse)
async def logout(user_id: int = Depends(get_current_user_id)):
    # tokens are stateless; the client discards its copy
    return MsgResponse(msg="Logged out")
