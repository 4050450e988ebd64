from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth.application.services import authenticate_user, list_other_users, register_user
from auth.domain.entities import User
from auth.infrastructure.user_repository import DbUserRepository
from auth.interfaces.schemas import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserResponse,
)
from shared.dependencies import get_current_user, get_db

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/auth/register", response_model=UserResponse, status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    repo = DbUserRepository(db)
    return await register_user(repo, username=body.username, password=body.password)


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    repo = DbUserRepository(db)
    user, token = await authenticate_user(repo, username=body.username, password=body.password)
    return LoginResponse(user=UserResponse.model_validate(user, from_attributes=True), access_token=token)


@router.get("/auth/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    repo = DbUserRepository(db)
    return await list_other_users(repo, current_user.id)
