"""
FastAPI service for the Masjid Finder backend
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..auth.credentials import get_token_issuer
from ..auth.identity import IdentityStore
from ..auth.policy import Action, authorize
from ..common.config import get_settings
from ..common.database import get_db, init_models
from ..common.errors import NotFound, ServiceError, Unauthenticated, validate_as, validation_message
from ..common.logger import get_logger
from ..common.models import (
    AuthOut, Envelope, LoginIn, MasjidCreate, MasjidOut, MasjidUpdate, ProcessIn,
    ProfileUpdate, RegisterIn, RequestIn, RequestOut, Role, RoleUpdate, UserOut,
)
from ..common.tables import UserRecord
from ..masjids.store import MasjidStore
from ..workflow.engine import RequestWorkflow

settings = get_settings()
logger = get_logger("api_service")

bearer_scheme = HTTPBearer(auto_error=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        await init_models()
        logger.info("Database tables ready")
    yield


# Initialize FastAPI
app = FastAPI(
    title="Masjid Finder API",
    description="""
Discover masjids, manage accounts, and route change requests through approval.

## Roles

- **main_admin**: the first registered account; processes requests and manages roles
- **admin**: may add, edit and delete masjids directly
- **user**: browses masjids and submits change requests

## Authentication

Send `Authorization: Bearer <token>` with the token returned by register/login.
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Registration, login and user roles"},
        {"name": "Masjids", "description": "Masjid directory and nearby search"},
        {"name": "Requests", "description": "Change requests and their approval"},
    ]
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=settings.cors_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error handling
# =============================================================================

def _failure(status_code: int, kind: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    body = Envelope(success=False, message=message, error=kind, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _failure(exc.status_code, exc.kind, "Server Error",
                        exc.message if settings.is_development else None)
    return _failure(exc.status_code, exc.kind, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _failure(400, "InvalidInput", validation_message(exc))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return _failure(404, "NotFound", "Route not found")
    return _failure(exc.status_code, "InvalidInput", str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return _failure(500, "Internal", "Server Error", str(exc) if settings.is_development else None)


# =============================================================================
# Dependencies
# =============================================================================

def get_identity(db: AsyncSession = Depends(get_db)) -> IdentityStore:
    return IdentityStore(db)


def get_masjids(db: AsyncSession = Depends(get_db)) -> MasjidStore:
    return MasjidStore(db, phone_region=settings.default_phone_region)


def get_workflow(
    db: AsyncSession = Depends(get_db),
    identity: IdentityStore = Depends(get_identity),
    masjids: MasjidStore = Depends(get_masjids),
) -> RequestWorkflow:
    return RequestWorkflow(db, identity, masjids)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: IdentityStore = Depends(get_identity),
) -> UserRecord:
    """Resolve the bearer token to the user, with the role as stored right now"""
    if credentials is None:
        raise Unauthenticated("Not authorized to access this route")
    user_id = get_token_issuer().verify(credentials.credentials)
    if user_id is None:
        raise Unauthenticated("Not authorized to access this route")
    try:
        return await identity.get(user_id)
    except NotFound:
        raise Unauthenticated("Not authorized to access this route") from None


def _auth_payload(user: UserRecord) -> AuthOut:
    return AuthOut(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        token=get_token_issuer().issue(user.id),
    )


# =============================================================================
# Service endpoints
# =============================================================================

@app.get("/")
async def root():
    """
    Root endpoint - service banner and entry points
    """
    return Envelope(
        message="Masjid Finder API is running",
        data={
            "health": "/api/health",
            "auth": "/api/auth",
            "masjids": "/api/masjids",
            "requests": "/api/requests",
        },
    )


@app.get("/api/health")
async def health(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint with database connectivity test
    Returns 200 if healthy, 503 if unhealthy
    """
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        return Envelope(
            message="Server is running",
            data={"database": "connected", "timestamp": datetime.now(timezone.utc).isoformat()},
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content=Envelope(
                success=False,
                message="Database unavailable",
                error="Internal",
                data={"database": "disconnected", "timestamp": datetime.now(timezone.utc).isoformat()},
            ).model_dump(exclude_none=True),
        )


# =============================================================================
# Auth API
# =============================================================================

@app.post("/api/auth/register", response_model=Envelope, status_code=201, tags=["Auth"])
async def register(
    body: RegisterIn,
    db: AsyncSession = Depends(get_db),
    identity: IdentityStore = Depends(get_identity),
):
    """
    Register an account. The very first account becomes main_admin.
    """
    user = await identity.register(body.name, body.email, body.password)
    await db.commit()
    message = ("Main admin account created successfully" if user.role == Role.MAIN_ADMIN
               else "User registered successfully")
    return Envelope(data=_auth_payload(user), message=message)


@app.post("/api/auth/login", response_model=Envelope, tags=["Auth"])
async def login(body: LoginIn, identity: IdentityStore = Depends(get_identity)):
    """
    Exchange email and password for a bearer token
    """
    user = await identity.authenticate(body.email, body.password)
    logger.info("User logged in", extra={"user_id": user.id})
    return Envelope(data=_auth_payload(user))


@app.get("/api/auth/me", response_model=Envelope, tags=["Auth"])
async def get_me(user: UserRecord = Depends(get_current_user)):
    """
    Profile of the authenticated user
    """
    authorize(user.role, Action.VIEW_PROFILE)
    return Envelope(data=UserOut.model_validate(user))


@app.put("/api/auth/me", response_model=Envelope, tags=["Auth"])
async def update_me(
    body: ProfileUpdate,
    user: UserRecord = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityStore = Depends(get_identity),
):
    """
    Update the authenticated user's name and/or password
    """
    user = await identity.update_profile(user, name=body.name, password=body.password)
    await db.commit()
    return Envelope(data=UserOut.model_validate(user), message="Profile updated successfully")


@app.get("/api/auth/users", response_model=Envelope, tags=["Auth"])
async def list_users(
    user: UserRecord = Depends(get_current_user),
    identity: IdentityStore = Depends(get_identity),
):
    """
    All accounts (main admin only)
    """
    authorize(user.role, Action.LIST_USERS, "Only main admin can view users")
    users = [UserOut.model_validate(u) for u in await identity.list()]
    return Envelope(data=users, count=len(users))


@app.put("/api/auth/users/{user_id}/role", response_model=Envelope, tags=["Auth"])
async def update_user_role(
    user_id: str,
    body: RoleUpdate,
    user: UserRecord = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    identity: IdentityStore = Depends(get_identity),
):
    """
    Set another account's role to user or admin (main admin only)
    """
    target = await identity.set_role(user, user_id, body.role)
    await db.commit()
    return Envelope(data=UserOut.model_validate(target), message=f"User role updated to {target.role.value}")


# =============================================================================
# Masjids API
# =============================================================================

@app.get("/api/masjids", response_model=Envelope, tags=["Masjids"])
async def list_masjids(masjids: MasjidStore = Depends(get_masjids)):
    """
    All masjids
    """
    items = [MasjidOut.from_record(m) for m in await masjids.find_all()]
    return Envelope(data=items, count=len(items))


@app.get("/api/masjids/nearby", response_model=Envelope, tags=["Masjids"])
async def get_masjids_near(
    longitude: Optional[str] = Query(None, description="Longitude of the search point"),
    latitude: Optional[str] = Query(None, description="Latitude of the search point"),
    max_distance: Optional[str] = Query(None, alias="maxDistance", description="Radius in meters (default 5000)"),
    masjids: MasjidStore = Depends(get_masjids),
):
    """
    Masjids within maxDistance meters of the point, nearest first
    """
    matches = await masjids.find_near(longitude, latitude, max_distance)
    items = [MasjidOut.from_record(m, distance=d) for m, d in matches]
    return Envelope(data=items, count=len(items))


@app.get("/api/masjids/{masjid_id}", response_model=Envelope, tags=["Masjids"])
async def get_masjid(masjid_id: str, masjids: MasjidStore = Depends(get_masjids)):
    """
    A single masjid
    """
    return Envelope(data=MasjidOut.from_record(await masjids.find_by_id(masjid_id)))


@app.post("/api/masjids", response_model=Envelope, status_code=201, tags=["Masjids"])
async def create_masjid(
    body: Dict[str, Any] = Body(..., description="MasjidCreate payload"),
    user: UserRecord = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    masjids: MasjidStore = Depends(get_masjids),
):
    """
    Add a masjid directly (admin or main admin). Users submit an add_masjid request instead.
    """
    # Role is checked before the payload is validated
    authorize(user.role, Action.CREATE_MASJID, "Only admins can directly add masjids. Please submit a request.")
    data = validate_as(MasjidCreate, body)
    masjid = await masjids.create(data, added_by=user.id)
    await db.commit()
    return Envelope(data=MasjidOut.from_record(masjid), message="Masjid created successfully")


@app.put("/api/masjids/{masjid_id}", response_model=Envelope, tags=["Masjids"])
async def update_masjid(
    masjid_id: str,
    body: Dict[str, Any] = Body(..., description="MasjidUpdate payload"),
    user: UserRecord = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    masjids: MasjidStore = Depends(get_masjids),
):
    """
    Partially update a masjid directly (admin or main admin)
    """
    authorize(user.role, Action.UPDATE_MASJID, "Only admins can directly update masjids. Please submit a request.")
    data = validate_as(MasjidUpdate, body)
    masjid = await masjids.update(masjid_id, data)
    await db.commit()
    return Envelope(data=MasjidOut.from_record(masjid), message="Masjid updated successfully")


@app.delete("/api/masjids/{masjid_id}", response_model=Envelope, tags=["Masjids"])
async def delete_masjid(
    masjid_id: str,
    user: UserRecord = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    masjids: MasjidStore = Depends(get_masjids),
):
    """
    Delete a masjid directly (admin or main admin)
    """
    authorize(user.role, Action.DELETE_MASJID, "Only admins can delete masjids")
    await masjids.delete(masjid_id)
    await db.commit()
    return Envelope(data={}, message="Masjid deleted successfully")


# =============================================================================
# Requests API
# =============================================================================

@app.post("/api/requests", response_model=Envelope, status_code=201, tags=["Requests"])
async def create_request(
    body: RequestIn,
    user: UserRecord = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    """
    Submit a change request (admin access, add/edit/delete masjid)
    """
    record = await workflow.submit(user, body.type, body.masjid_id, body.masjid_data, body.reason)
    await db.commit()
    return Envelope(data=RequestOut.from_record(record), message="Request submitted successfully")


@app.get("/api/requests/my-requests", response_model=Envelope, tags=["Requests"])
async def get_my_requests(
    user: UserRecord = Depends(get_current_user),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    """
    The authenticated user's requests, newest first
    """
    items = [RequestOut.from_record(r) for r in await workflow.list_for(user)]
    return Envelope(data=items, count=len(items))


@app.get("/api/requests", response_model=Envelope, tags=["Requests"])
async def list_all_requests(
    status: Optional[str] = Query(None, description="pending, approved or rejected"),
    type: Optional[str] = Query(None, description="admin_access, add_masjid, edit_masjid or delete_masjid"),
    user: UserRecord = Depends(get_current_user),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    """
    All requests, newest first (main admin only)
    """
    items = [RequestOut.from_record(r) for r in await workflow.list_all(user, status=status, type=type)]
    return Envelope(data=items, count=len(items))


@app.put("/api/requests/{request_id}/process", response_model=Envelope, tags=["Requests"])
async def process_request(
    request_id: str,
    body: ProcessIn,
    user: UserRecord = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    """
    Approve or reject a pending request (main admin only); approval applies the change
    """
    record = await workflow.process(user, request_id, body.status, body.admin_response)
    await db.commit()
    return Envelope(data=RequestOut.from_record(record), message=f"Request {record.status.value} successfully")


@app.delete("/api/requests/{request_id}", response_model=Envelope, tags=["Requests"])
async def delete_request(
    request_id: str,
    user: UserRecord = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    """
    Withdraw a pending request (its requester or the main admin)
    """
    await workflow.delete(user, request_id)
    await db.commit()
    return Envelope(message="Request deleted successfully")


if __name__ == "__main__":
    uvicorn.run(
        "backend.services.api_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        log_level=settings.log_level.lower()
    )
