"""Service layer for the app catalog, moderation, reviews and accounts."""

import logging
from typing import Dict, Iterable, List, Optional

from fastapi import HTTPException, status as http_status
from prometheus_client import Counter
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .credentials import dummy_credential, hash_password, verify_password
from .database import (
    APP_CATEGORIES,
    APP_STATUSES,
    ROLE_USER,
    STATUS_APPROVED,
    STATUS_PENDING,
    App,
    Review,
    SessionLocal,
)
from .models.user import User


logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"
INVALID_CREDENTIALS = "Invalid credentials"

# Prometheus counters for key service events
REGISTRATION_COUNTER = Counter("user_registrations_total", "Total accounts registered")
LOGIN_COUNTER = Counter("user_logins_total", "Login attempts by outcome", ["outcome"])
SUBMISSION_COUNTER = Counter(
    "app_submissions_total", "Total apps submitted", ["initial_status"]
)
STATUS_TRANSITION_COUNTER = Counter(
    "app_status_transitions_total", "Moderation status changes", ["target"]
)
REVIEW_COUNTER = Counter("app_reviews_total", "Total reviews created")


def _handle_service_error(
    session: Session, exc: Exception, conflict_detail: str = "Conflict"
) -> None:
    """Rollback transaction and raise HTTP exception for service errors."""
    session.rollback()
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, IntegrityError):
        logger.info("integrity error: %s", conflict_detail)
        raise HTTPException(status_code=409, detail=conflict_detail) from exc
    logger.exception("service layer error", exc_info=exc)
    if isinstance(exc, SQLAlchemyError):
        raise HTTPException(status_code=500, detail="Database error") from exc
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    raise exc


def _is_admin(user: Optional[User]) -> bool:
    return user is not None and user.is_admin


def _require_actor(actor: Optional[User]) -> User:
    if actor is None:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    return actor


def _user_names(session: Session, user_ids: Iterable[int]) -> Dict[int, str]:
    """Resolve display names for ``user_ids`` with a single query."""
    ids = set(user_ids)
    if not ids:
        return {}
    rows = session.query(User.id, User.name).filter(User.id.in_(ids)).all()
    return {row[0]: row[1] for row in rows}


def _attach_developer_names(session: Session, apps: List[App]) -> List[App]:
    names = _user_names(session, (a.developer_id for a in apps))
    for item in apps:
        item.developer_name = names.get(item.developer_id, UNKNOWN_NAME)
    return apps


def _can_view(viewer: Optional[User], item: App) -> bool:
    if item.status == STATUS_APPROVED or _is_admin(viewer):
        return True
    return viewer is not None and item.developer_id == viewer.id


def _normalize_category(category: Optional[str]) -> Optional[str]:
    if category in (None, "", "All"):
        return None
    if category not in APP_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"Unknown category: {category}")
    return category


def _query_apps(
    session: Session,
    category: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
    developer_id: Optional[int] = None,
) -> List[App]:
    query = session.query(App)
    if status:
        query = query.filter(App.status == status)
    if category:
        query = query.filter(App.category == category)
    if developer_id is not None:
        query = query.filter(App.developer_id == developer_id)
    if search:
        query = query.filter(
            or_(
                App.name.icontains(search, autoescape=True),
                App.short_description.icontains(search, autoescape=True),
                App.category.icontains(search, autoescape=True),
            )
        )
    apps = query.order_by(App.created_at.desc(), App.id.desc()).all()
    return _attach_developer_names(session, apps)


def list_apps(
    viewer: Optional[User],
    category: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
    developer_id: Optional[int] = None,
) -> List[App]:
    """Return catalog entries matching every supplied filter, newest first.

    Parameters
    ----------
    viewer: User | None
        The caller. Anyone who is not an admin only ever sees approved apps;
        the requested ``status`` is overridden for them.
    category: str | None
        Exact category match. ``None``, ``""`` and ``"All"`` disable the filter.
    search: str | None
        Case-insensitive substring over name, short description and category.
    status: str | None
        Lifecycle status, honoured for admins only.
    developer_id: int | None
        Restrict to one developer's submissions.
    """
    category = _normalize_category(category)
    search = (search or "").strip() or None
    if not _is_admin(viewer):
        status = STATUS_APPROVED
    elif status is not None and status not in APP_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}")

    session: Session = SessionLocal()
    try:
        return _query_apps(session, category, search, status, developer_id)
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()


def list_my_apps(actor: Optional[User]) -> List[App]:
    """Return every submission owned by ``actor`` regardless of status."""
    actor = _require_actor(actor)
    session: Session = SessionLocal()
    try:
        return _query_apps(session, developer_id=actor.id)
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()


def _get_visible_app(session: Session, viewer: Optional[User], app_id: int) -> App:
    item = session.get(App, app_id)
    # Hidden listings are reported as missing
    if item is None or not _can_view(viewer, item):
        raise HTTPException(status_code=404, detail="App not found")
    return item


def get_app(viewer: Optional[User], app_id: int) -> App:
    """Fetch one listing with its developer name."""
    session: Session = SessionLocal()
    try:
        item = _get_visible_app(session, viewer, app_id)
        _attach_developer_names(session, [item])
        return item
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()


def create_app(
    actor: Optional[User],
    name: str,
    short_description: str,
    full_description: str,
    icon_url: str,
    category: str,
    screenshots: Optional[List[str]] = None,
    pwa_url: Optional[str] = None,
    apk_url: Optional[str] = None,
    file_size: Optional[int] = None,
    version_name: Optional[str] = None,
    version_code: Optional[int] = None,
) -> App:
    """Persist a new submission owned by ``actor``.

    Submissions by admins are approved immediately; everyone else's wait in
    ``pending`` for moderation.
    """
    actor = _require_actor(actor)
    if category not in APP_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"Unknown category: {category}")
    if not pwa_url and not apk_url:
        raise HTTPException(
            status_code=400, detail="Either a web app URL or a package URL is required"
        )

    initial_status = STATUS_APPROVED if actor.is_admin else STATUS_PENDING
    logger.info(
        "create app developer=%s name=%s status=%s", actor.id, name, initial_status
    )
    session: Session = SessionLocal()
    try:
        item = App(
            name=name,
            short_description=short_description,
            full_description=full_description,
            icon_url=icon_url,
            category=category,
            screenshots=list(screenshots or []),
            pwa_url=pwa_url,
            apk_url=apk_url,
            file_size=file_size,
            version_name=version_name,
            version_code=version_code,
            status=initial_status,
            developer_id=actor.id,
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        item.developer_name = actor.name
        SUBMISSION_COUNTER.labels(initial_status=initial_status).inc()
        logger.info("created app id=%s developer=%s", item.id, actor.id)
        return item
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()


def set_app_status(actor: Optional[User], app_id: int, target: str) -> App:
    """Move a listing to ``target``; any status may follow any other.

    Checks run in order: admin role (403), target value (400), existence (404).
    """
    actor = _require_actor(actor)
    if not actor.is_admin:
        raise HTTPException(status_code=http_status.HTTP_403_FORBIDDEN, detail="Forbidden")
    if target not in APP_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {target}")

    session: Session = SessionLocal()
    try:
        item = session.get(App, app_id)
        if item is None:
            raise HTTPException(status_code=404, detail="App not found")
        previous = item.status
        item.status = target
        session.commit()
        session.refresh(item)
        _attach_developer_names(session, [item])
        STATUS_TRANSITION_COUNTER.labels(target=target).inc()
        logger.info(
            "app id=%s status %s -> %s by admin=%s", app_id, previous, target, actor.id
        )
        return item
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()


def delete_app(actor: Optional[User], app_id: int) -> None:
    """Remove a listing and its reviews. Allowed for admins and the owner."""
    actor = _require_actor(actor)
    session: Session = SessionLocal()
    try:
        item = session.get(App, app_id)
        if item is None:
            raise HTTPException(status_code=404, detail="App not found")
        if not actor.is_admin and item.developer_id != actor.id:
            raise HTTPException(
                status_code=http_status.HTTP_403_FORBIDDEN, detail="Forbidden"
            )
        session.delete(item)
        session.commit()
        logger.info("deleted app id=%s by user=%s", app_id, actor.id)
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()


def get_admin_stats(actor: Optional[User]) -> Dict[str, int]:
    """Aggregate catalog and account counts for the admin dashboard."""
    actor = _require_actor(actor)
    if not actor.is_admin:
        raise HTTPException(status_code=http_status.HTTP_403_FORBIDDEN, detail="Forbidden")
    session: Session = SessionLocal()
    try:
        total_apps = session.query(func.count(App.id)).scalar() or 0
        pending_apps = (
            session.query(func.count(App.id))
            .filter(App.status == STATUS_PENDING)
            .scalar()
            or 0
        )
        total_users = session.query(func.count(User.id)).scalar() or 0
        return {
            "total_apps": total_apps,
            "pending_apps": pending_apps,
            "total_users": total_users,
        }
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()


def create_review(
    actor: Optional[User], app_id: int, rating: int, comment: Optional[str] = None
) -> Review:
    """Record ``actor``'s review of an app; one review per user and app."""
    actor = _require_actor(actor)
    if not 1 <= rating <= 5:
        raise HTTPException(status_code=400, detail="Rating must be between 1 and 5")

    session: Session = SessionLocal()
    try:
        _get_visible_app(session, actor, app_id)
        review = Review(app_id=app_id, user_id=actor.id, rating=rating, comment=comment)
        session.add(review)
        session.commit()
        session.refresh(review)
        review.user_name = actor.name
        REVIEW_COUNTER.inc()
        logger.info("created review id=%s app=%s user=%s", review.id, app_id, actor.id)
        return review
    except Exception as exc:
        _handle_service_error(
            session, exc, conflict_detail="You have already reviewed this app"
        )
    finally:
        session.close()


def list_reviews(viewer: Optional[User], app_id: int) -> List[Review]:
    """Return the reviews of a visible app, newest first."""
    session: Session = SessionLocal()
    try:
        _get_visible_app(session, viewer, app_id)
        reviews = (
            session.query(Review)
            .filter(Review.app_id == app_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .all()
        )
        names = _user_names(session, (r.user_id for r in reviews))
        for review in reviews:
            review.user_name = names.get(review.user_id, UNKNOWN_NAME)
        return reviews
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()


def get_user(user_id: int) -> Optional[User]:
    session: Session = SessionLocal()
    try:
        return session.get(User, user_id)
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()


def register_user(email: str, password: str, name: str) -> User:
    """Create a ``user``-role account; the email must not be taken."""
    if not email or not password or not name:
        raise HTTPException(status_code=400, detail="Email, password and name are required")

    session: Session = SessionLocal()
    try:
        if session.query(User.id).filter(User.email == email).first():
            raise HTTPException(
                status_code=409, detail="User with that email already exists"
            )
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=ROLE_USER,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        REGISTRATION_COUNTER.inc()
        logger.info("registered user id=%s", user.id)
        return user
    except Exception as exc:
        _handle_service_error(
            session, exc, conflict_detail="User with that email already exists"
        )
    finally:
        session.close()


def authenticate_user(email: str, password: str) -> User:
    """Verify a password and return the account.

    Unknown accounts and wrong passwords fail identically; a throwaway hash
    is still computed for unknown accounts.
    """
    session: Session = SessionLocal()
    try:
        user = session.query(User).filter(User.email == email).first()
        stored = user.password_hash if user is not None else dummy_credential()
        valid = verify_password(password, stored)
        if user is None or not valid:
            LOGIN_COUNTER.labels(outcome="failure").inc()
            raise HTTPException(
                status_code=http_status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
            )
        LOGIN_COUNTER.labels(outcome="success").inc()
        return user
    except Exception as exc:
        _handle_service_error(session, exc)
    finally:
        session.close()
