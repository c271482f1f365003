import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import create_access_token, get_current_user
from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(body: schemas.UserCreate, db: Session = Depends(get_db)):
    # bcrypt only looks at the first 72 bytes
    if len(body.password.encode("utf-8")) > 72:
        raise HTTPException(
            status_code=400,
            detail="Password is too long. Please use at most 72 bytes.",
        )

    try:
        user = crud.create_user(db, name=body.name, email=body.email, password=body.password)
    except ValueError as e:
        if str(e) == "duplicate_email":
            raise HTTPException(status_code=409, detail="User with this email already exists")
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrityError:
        # DB-level unique constraint (race conditions)
        db.rollback()
        raise HTTPException(status_code=409, detail="User with this email already exists")

    logger.info("User %s registered", user.id)
    return {
        "message": "User registered successfully",
        "token": create_access_token(user.id, user.email),
        "user": user,
    }


@router.post("/login", response_model=schemas.AuthResponse)
def login(body: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = crud.authenticate_user(db, email=body.email, password=body.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {
        "message": "Login successful",
        "token": create_access_token(user.id, user.email),
        "user": user,
    }


@router.get("/profile", response_model=schemas.UserProfile)
def read_profile(current_user: Dict = Depends(get_current_user), db: Session = Depends(get_db)):
    user = crud.get_user_by_id(db, current_user["id"])
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
