"""
Session Authentication Routes

Login, profile and user administration.
"""

from fastapi import APIRouter, Depends, status

from llmmux.api.deps import SessionCredentialDep, UserServiceDep, require_route
from llmmux.domain.user import LoginRequest, LoginResponse, UserCreate, UserProfile

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, service: UserServiceDep):
    """Exchange email and password for a session token"""
    return await service.login(data)


@router.get(
    "/profile",
    response_model=UserProfile,
    dependencies=[Depends(require_route("auth.profile"))],
)
async def profile(credential: SessionCredentialDep, service: UserServiceDep):
    return await service.get_profile(credential.user_id)


@router.post(
    "/register",
    response_model=UserProfile,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_route("auth.register"))],
)
async def register(data: UserCreate, service: UserServiceDep):
    """Register a user (administrators only)"""
    return await service.register(data)


@router.get(
    "/users",
    response_model=list[UserProfile],
    dependencies=[Depends(require_route("auth.users"))],
)
async def list_users(service: UserServiceDep):
    return await service.list_users()
