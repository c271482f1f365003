import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from . import __version__, crud
from .config import ADMIN_EMAIL, ADMIN_NAME, ADMIN_PASSWORD, CORS_ORIGINS
from .database import SessionLocal, engine
from .migrations import run_migrations
from .models import Base
from .routers import admin_router, auth_router, health_router, parking_router, review_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="ParkEasy Backend",
    description="Peer-to-peer parking spot marketplace: list, reserve and review parking spots",
    version=__version__,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router.router)
app.include_router(auth_router.router)
app.include_router(parking_router.router)
app.include_router(review_router.router)
app.include_router(admin_router.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed ids and bodies are caller errors, reported as 400 like the rest of the API
    errors = exc.errors()
    first = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"detail": "Validation failed", "error": first, "errors": errors}),
    )


def init_admin_user():
    if not ADMIN_PASSWORD:
        return

    db = SessionLocal()
    try:
        admin_user = crud.get_user_by_email(db, ADMIN_EMAIL)
        if not admin_user:
            crud.create_user(db, name=ADMIN_NAME, email=ADMIN_EMAIL, password=ADMIN_PASSWORD, is_admin=True)
            logger.info("Admin user %s created", ADMIN_EMAIL)
        elif not admin_user.is_admin:
            # Ensure the configured account has admin rights
            admin_user.is_admin = True
            db.commit()
            logger.info("Admin user %s updated", ADMIN_EMAIL)
    except Exception:
        logger.exception("Error initializing admin user")
        db.rollback()
    finally:
        db.close()


@app.on_event("startup")
def startup_event() -> None:
    # Create database tables
    Base.metadata.create_all(bind=engine)
    run_migrations()
    init_admin_user()


@app.get("/", response_class=PlainTextResponse)
def root():
    return "ParkEasy Backend is running!"
