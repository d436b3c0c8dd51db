from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.models.user import User
from taskflow.schemas.user import UserCreate, UserLogin, UserResponse, Token
from taskflow.database import get_db
from taskflow.utils.password import hash_password, verify_password
from taskflow.core.security import create_access_token, create_refresh_token
from taskflow.core.auth import get_current_user
from taskflow.services.workspace import find_user_by_email


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate, db: AsyncSession = Depends(get_db)):
    if await find_user_by_email(db, user_in.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        hashed_pw = hash_password(user_in.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # New accounts always start as plain users
    user = User(
        email=user_in.email,
        name=user_in.name,
        hashed_password=hashed_pw,
        role="USER",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@router.post("/login", response_model=Token)
async def login(user_in: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await find_user_by_email(db, user_in.email)

    if not user or not verify_password(user_in.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Token(
        access_token=create_access_token({"sub": str(user.id)}),
        refresh_token=create_refresh_token({"sub": str(user.id)}),
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )


@router.get("/me", response_model=UserResponse)
async def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user
