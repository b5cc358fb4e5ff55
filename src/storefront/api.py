"""FastAPI application exposing the app marketplace endpoints."""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

import logging
from fastapi import Body, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import notifications, services
from .auth import (
    get_current_user,
    get_optional_user,
    get_session_store,
    get_session_token,
)
from .config import DEFAULT_SESSION_SECRET, settings
from .database import APP_CATEGORIES, App, Review, init_db
from .models.user import User
from .sessions import SessionStore, build_session_store, issue_token, revoke_token, session_ttl


limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
app = FastAPI(title=settings.api_title)
app.state.limiter = limiter
app.state.session_store = build_session_store(settings)
init_db()

logger = logging.getLogger(__name__)

if settings.session_secret == DEFAULT_SESSION_SECRET:
    logger.warning("SESSION_SECRET is not set, signing sessions with the development default")

SENSITIVE_RATE_LIMIT = "5/minute"
CONTACT_RATE_LIMIT = "3/minute"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Prometheus counter to track API requests by method, endpoint and status code
REQUEST_COUNTER = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests and their outcomes while updating metrics."""
    logger.info("request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=request.url.path,
            status=str(response.status_code),
        ).inc()
        logger.info(
            "response %s %s status %s",
            request.method,
            request.url.path,
            response.status_code,
        )
        return response
    except Exception:
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=request.url.path,
            status="500",
        ).inc()
        logger.exception(
            "error handling %s %s", request.method, request.url.path
        )
        raise


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"message": f"Rate limit exceeded: {exc.detail}"},
    )
    return request.app.state.limiter._inject_headers(
        response, request.state.view_rate_limit
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report the first invalid field as a 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": first.get("msg", "Invalid request"), "field": field},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error for %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


class UserResponse(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: str
    created_at: datetime


class RegisterRequest(BaseModel):
    """Request body for creating an account."""

    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)


class LoginRequest(BaseModel):
    """Request body for signing in; ``username`` is accepted for ``email``."""

    email: str = Field(..., validation_alias=AliasChoices("email", "username"))
    password: str


class MessageResponse(BaseModel):
    message: str


class DeveloperInfo(BaseModel):
    name: str


class AppRecord(BaseModel):
    """Stored columns of a listing."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    short_description: str
    full_description: str
    icon_url: str
    pwa_url: Optional[str] = None
    apk_url: Optional[str] = None
    file_size: Optional[int] = None
    version_name: Optional[str] = None
    version_code: Optional[int] = None
    category: str
    screenshots: List[str] = []
    status: str
    developer_id: int
    created_at: datetime


class AppResponse(AppRecord):
    """A listing with its developer's display name."""

    developer: DeveloperInfo


class SubmissionBase(BaseModel):
    """Fields shared by every kind of submission."""

    name: str = Field(..., min_length=1, max_length=120)
    short_description: str = Field(..., min_length=1, max_length=200)
    full_description: str = Field(..., min_length=1)
    icon_url: str = Field(..., min_length=1)
    category: str
    screenshots: List[str] = Field(default_factory=list)

    @field_validator("category")
    @classmethod
    def check_category(cls, value: str) -> str:
        if value not in APP_CATEGORIES:
            raise ValueError(f"Unknown category: {value}")
        return value


class WebSubmission(SubmissionBase):
    """A progressive web app reachable at ``pwa_url``."""

    kind: Literal["web"]
    pwa_url: str = Field(..., min_length=1)


class PackageSubmission(SubmissionBase):
    """An installable package hosted at ``apk_url``."""

    kind: Literal["package"]
    apk_url: str = Field(..., min_length=1)
    file_size: Optional[int] = Field(None, ge=0)
    version_name: Optional[str] = Field(None, max_length=50)
    version_code: Optional[int] = Field(None, ge=0)


AppSubmission = Union[WebSubmission, PackageSubmission]


class StatusUpdate(BaseModel):
    """Request body for moderating a listing."""

    status: str


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=3, max_length=500)


class ReviewerInfo(BaseModel):
    name: str


class ReviewResponse(BaseModel):
    """Serialized review with the reviewer's display name."""

    id: int
    app_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    user: ReviewerInfo


class StatsResponse(BaseModel):
    """Aggregate counts for the admin dashboard."""

    total_apps: int
    pending_apps: int
    total_users: int


class ContactRequest(BaseModel):
    """Request body for the contact form."""

    name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    message: str = Field(..., min_length=10, max_length=5000)


def serialize_app(item: App) -> AppResponse:
    data = AppRecord.model_validate(item).model_dump()
    name = getattr(item, "developer_name", services.UNKNOWN_NAME)
    return AppResponse(**data, developer=DeveloperInfo(name=name))


def serialize_review(review: Review) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        app_id=review.app_id,
        user_id=review.user_id,
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at,
        user=ReviewerInfo(name=getattr(review, "user_name", services.UNKNOWN_NAME)),
    )


def _start_session(response: Response, store: SessionStore, user: User) -> None:
    token = issue_token(store, user.id, settings)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=int(session_ttl(settings).total_seconds()),
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


@app.post("/api/register", response_model=UserResponse, status_code=201)
@limiter.limit(SENSITIVE_RATE_LIMIT)
def register(
    request: Request,
    response: Response,
    payload: RegisterRequest,
    store: SessionStore = Depends(get_session_store),
):
    """Create an account and sign it in."""
    user = services.register_user(payload.email, payload.password, payload.name)
    _start_session(response, store, user)
    return user


@app.post("/api/login", response_model=UserResponse)
@limiter.limit(SENSITIVE_RATE_LIMIT)
def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    store: SessionStore = Depends(get_session_store),
):
    user = services.authenticate_user(payload.email, payload.password)
    _start_session(response, store, user)
    logger.info("user id=%s logged in", user.id)
    return user


@app.post("/api/logout", response_model=MessageResponse)
def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    token: Optional[str] = Depends(get_session_token),
    store: SessionStore = Depends(get_session_store),
):
    """Invalidate the caller's session."""
    if token:
        revoke_token(store, token, settings)
    response.delete_cookie(settings.session_cookie_name)
    logger.info("user id=%s logged out", current_user.id)
    return MessageResponse(message="Logged out successfully")


@app.get("/api/user", response_model=UserResponse)
def current_identity(current_user: User = Depends(get_current_user)):
    return current_user


@app.get("/api/apps", response_model=List[AppResponse])
def list_apps(
    category: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
    developer_id: Optional[int] = None,
    viewer: Optional[User] = Depends(get_optional_user),
):
    """List catalog entries; only admins see listings that are not approved."""
    apps = services.list_apps(
        viewer,
        category=category,
        search=search,
        status=status,
        developer_id=developer_id,
    )
    return [serialize_app(a) for a in apps]


@app.get("/api/my-apps", response_model=List[AppResponse])
def list_my_apps(current_user: User = Depends(get_current_user)):
    """List the caller's own submissions in every status."""
    return [serialize_app(a) for a in services.list_my_apps(current_user)]


@app.get("/api/apps/{app_id}", response_model=AppResponse)
def get_app(app_id: int, viewer: Optional[User] = Depends(get_optional_user)):
    return serialize_app(services.get_app(viewer, app_id))


@app.post("/api/apps", response_model=AppResponse, status_code=201)
def submit_app(
    payload: Annotated[AppSubmission, Body(discriminator="kind")],
    current_user: User = Depends(get_current_user),
):
    """Submit a listing; it awaits moderation unless the submitter is an admin."""
    item = services.create_app(current_user, **payload.model_dump(exclude={"kind"}))
    return serialize_app(item)


@app.patch("/api/apps/{app_id}/status", response_model=AppResponse)
def update_app_status(
    app_id: int,
    payload: StatusUpdate,
    current_user: User = Depends(get_current_user),
):
    """Move a listing between pending, approved and rejected (admins only)."""
    return serialize_app(services.set_app_status(current_user, app_id, payload.status))


@app.delete("/api/apps/{app_id}", status_code=204)
def delete_app(app_id: int, current_user: User = Depends(get_current_user)):
    services.delete_app(current_user, app_id)
    return Response(status_code=204)


@app.get("/api/apps/{app_id}/reviews", response_model=List[ReviewResponse])
def list_reviews(app_id: int, viewer: Optional[User] = Depends(get_optional_user)):
    return [serialize_review(r) for r in services.list_reviews(viewer, app_id)]


@app.post("/api/apps/{app_id}/reviews", response_model=ReviewResponse, status_code=201)
def post_review(
    app_id: int,
    payload: ReviewRequest,
    current_user: User = Depends(get_current_user),
):
    """Rate an app; each user may review an app once."""
    review = services.create_review(current_user, app_id, payload.rating, payload.comment)
    return serialize_review(review)


@app.get("/api/admin/stats", response_model=StatsResponse)
def admin_stats(current_user: User = Depends(get_current_user)):
    return services.get_admin_stats(current_user)


@app.post("/api/contact", response_model=MessageResponse)
@limiter.limit(CONTACT_RATE_LIMIT)
def contact(
    request: Request,
    payload: ContactRequest,
    viewer: Optional[User] = Depends(get_optional_user),
):
    """Forward a contact form message through the mail relay."""
    role = "ADMIN" if viewer is not None and viewer.is_admin else "USER"
    sent = notifications.send_contact_message(
        payload.name, payload.email, payload.message, role=role
    )
    if not sent:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Failed to send message"},
        )
    return MessageResponse(message="Message sent")


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
