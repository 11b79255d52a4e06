"""FastAPI application for Campus Events."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path
from urllib.parse import urlencode
import tomllib

from fastapi import (
    Depends,
    FastAPI,
    File,
    Form,
    Query,
    Request,
    Response,
    UploadFile,
)
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import crud
from .calendar_view import build_month_grid
from .catalog import (
    ALL_CATEGORIES,
    CatalogEntry,
    filter_catalog,
    load_catalog,
    load_favorite_events,
    load_my_events,
    load_past_events,
)
from .config import settings
from .database import SessionLocal
from .detail import EventDetailSurface, EventForm, create_event_from_form, delete_event
from .errors import CampusEventsError, NotFound, NotSignedIn, PermissionDenied, ValidationFailed
from .media import default_storage, upload_image, upload_video
from .models import Profile
from .notifications import Notification, success
from .reconciler import RegistrationReconciler, ToggleResult
from .schema import init_db
from .serializers import (
    serialize_category,
    serialize_entry,
    serialize_event,
    serialize_profile,
)
from .session import (
    CREATE_EVENT,
    EDIT_EVENT,
    UPLOAD_IMAGE,
    UPLOAD_VIDEO,
    SessionContext,
    sign_out,
)
from .utils import format_event_date, utcnow

# Use uvicorn's error logger so messages get the level prefix in the default log
# format.
logger = logging.getLogger("uvicorn.error")


def _no_cache(response: Response) -> Response:
    """Prevent clients from caching dynamic pages so fresh data is shown."""
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response


def _load_app_version() -> str:
    """Return the current package version, falling back to pyproject for dev runs."""
    try:
        return pkg_version("campusevents")
    except PackageNotFoundError:
        pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            data = tomllib.loads(pyproject_path.read_text())
            project = data.get("project") or {}
            return str(project.get("version") or "dev")
    return "dev"


APP_VERSION = _load_app_version()
TOGGLE_STATUS = {"full": 409, "pending": 409, "error": 503}


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title="Campus Events", version=APP_VERSION, lifespan=lifespan)
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
settings.media_dir.mkdir(parents=True, exist_ok=True)
app.mount(
    "/storage",
    StaticFiles(directory=str(settings.media_dir), check_dir=False),
    name="storage",
)

templates.env.globals["app_version"] = APP_VERSION
templates.env.filters["event_date"] = format_event_date


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _get_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization") or ""
    if auth_header.lower().startswith("bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        if token:
            return token
    return request.cookies.get(settings.cookie_name) or None


def get_session_context(
    request: Request, db: Session = Depends(get_db)
) -> SessionContext:
    return SessionContext().load(db, _get_bearer_token(request))


def _require_signed_in(session: SessionContext) -> Profile:
    if not session.is_authenticated:
        raise NotSignedIn("You must be logged in")
    return session.profile


def _wants_json(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    return request.url.path.startswith("/api/") or (
        "application/json" in accept and "text/html" not in accept
    )


def _render_error(request: Request, status_code: int, message: str | None):
    context = {
        "request": request,
        "status_code": status_code,
        "message": None,
        "error_message": message or "Something went wrong.",
    }
    return templates.TemplateResponse(
        request, "error.html", context, status_code=status_code
    )


def _redirect_with(url: str, notification: Notification | None) -> RedirectResponse:
    if notification is None:
        return RedirectResponse(url=url, status_code=303)
    query = urlencode(
        {
            "message": notification.description,
            "message_class": notification.message_class,
        }
    )
    separator = "&" if "?" in url else "?"
    return RedirectResponse(url=f"{url}{separator}{query}", status_code=303)


def _return_path(request: Request) -> str:
    """Current path and filters, without the one-off message parameters."""
    params = [
        (key, value)
        for key, value in request.query_params.multi_items()
        if key not in {"message", "message_class"}
    ]
    if not params:
        return request.url.path
    return f"{request.url.path}?{urlencode(params)}"


templates.env.globals["return_path"] = _return_path


def _safe_next(raw: str | None, fallback: str) -> str:
    if raw and raw.startswith("/") and not raw.startswith("//"):
        return raw
    return fallback


@app.exception_handler(CampusEventsError)
async def campus_events_error_handler(request: Request, exc: CampusEventsError):
    if exc.status_code >= 500:
        logger.error(
            "Request %s %s failed: %s", request.method, request.url.path, exc.message
        )
    else:
        logger.info(
            "Rejected %s %s: %s", request.method, request.url.path, exc.message
        )
    if _wants_json(request):
        return JSONResponse(
            {"detail": exc.message, "notification": exc.notification.as_dict()},
            status_code=exc.status_code,
        )
    return _render_error(request, exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as friendly pages unless JSON was requested."""
    if _wants_json(request):
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)
    detail = exc.detail if isinstance(exc.detail, str) else "Something went wrong."
    return _render_error(request, exc.status_code, detail)


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    raw = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
    if "database is locked" in raw.lower():
        logger.error(
            "SQLite database is locked while handling %s %s",
            request.method,
            request.url.path,
        )
        detail = "The database is busy at the moment. Please wait a few seconds and try again."
        status = 503
    else:
        logger.error(
            "Operational database error on %s %s: %s",
            request.method,
            request.url.path,
            raw,
        )
        detail = "We hit a database issue. Please try again."
        status = 500
    if _wants_json(request):
        return JSONResponse({"detail": detail}, status_code=status)
    return _render_error(request, status, detail)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    if _wants_json(request):
        return JSONResponse({"detail": exc.errors()}, status_code=422)
    return _render_error(
        request,
        422,
        "Some of the fields were invalid. Please double-check and try again.",
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Gracefully handle unexpected errors."""
    logger.exception(
        "Unhandled error while processing %s %s", request.method, request.url.path
    )
    if _wants_json(request):
        return JSONResponse({"detail": "Internal server error"}, status_code=500)
    return _render_error(
        request,
        500,
        "We hit a snag while processing that request. Please try again.",
    )


class EventCreatePayload(BaseModel):
    title: str | None = None
    description: str | None = None
    location: str | None = None
    start_time: str | None = Field(None, description="ISO datetime string")
    end_time: str | None = Field(None, description="ISO datetime string after start_time")
    max_attendees: int | None = Field(
        None, description="Registration cap; non-positive values mean unlimited"
    )
    image_url: str | None = None
    tags: list[str] | str | None = None
    category_id: str | None = None

    def to_form(self) -> EventForm:
        return EventForm(**self.model_dump())


class EventUpdatePayload(EventCreatePayload):
    """Full edit form; every required field must be resubmitted."""


class CommentPayload(BaseModel):
    content: str


class ProfileUpdatePayload(BaseModel):
    full_name: str
    bio: str | None = None
    department: str | None = None


def _reconciler_for(db: Session, session: SessionContext) -> RegistrationReconciler | None:
    if not session.is_authenticated:
        return None
    return RegistrationReconciler.load(db, session.user_id)


def _require_event(db: Session, event_id: str):
    event = crud.get_event(db, event_id)
    if event is None:
        raise NotFound("Event not found")
    return event


def _toggle_registration(
    db: Session, session: SessionContext, event_id: str
) -> ToggleResult:
    _require_signed_in(session)
    event = _require_event(db, event_id)
    if event.end_time < utcnow():
        raise ValidationFailed("Registration is closed for past events")
    current_count = crud.attendee_count(db, event_id)
    reconciler = RegistrationReconciler.load(db, session.user_id)
    return reconciler.toggle_registration(event_id, event.max_attendees, current_count)


def _toggle_favorite(db: Session, session: SessionContext, event_id: str) -> ToggleResult:
    _require_signed_in(session)
    _require_event(db, event_id)
    reconciler = RegistrationReconciler.load(db, session.user_id)
    return reconciler.toggle_favorite(event_id)


def _serialize_entries(
    entries: list[CatalogEntry], reconciler: RegistrationReconciler | None
) -> list[dict]:
    if reconciler is None:
        return [serialize_entry(entry) for entry in entries]
    return [
        serialize_entry(
            entry,
            registered=reconciler.is_registered(entry.id),
            favorited=reconciler.is_favorited(entry.id),
        )
        for entry in entries
    ]


def _resolve_month(year: int | None, month: int | None) -> tuple[int, int]:
    today = utcnow()
    return (year or today.year, month or today.month)


def _read_upload(upload: UploadFile | None) -> tuple[str, str | None, bytes] | None:
    if upload is None or not upload.filename:
        return None
    return upload.filename, upload.content_type, upload.file.read()


def _store_image(upload: UploadFile | None, *, folder: str = "event-images") -> str | None:
    payload = _read_upload(upload)
    if payload is None:
        return None
    filename, content_type, data = payload
    return upload_image(
        default_storage(),
        filename=filename,
        content_type=content_type,
        data=data,
        folder=folder,
    )


def _apply_profile_update(
    db: Session,
    profile: Profile,
    *,
    full_name: str | None,
    bio: str | None,
    department: str | None,
    store_avatar=None,
) -> Profile:
    """Validate the profile fields, then store the avatar, then write the row."""
    cleaned_name = (full_name or "").strip()
    if not cleaned_name:
        raise ValidationFailed("Full name is required")
    avatar_url = store_avatar() if store_avatar else None
    profile = crud.update_profile(
        db,
        profile,
        full_name=cleaned_name,
        bio=(bio or "").strip() or None,
        department=(department or "").strip() or None,
    )
    if avatar_url:
        profile = crud.set_avatar_url(db, profile, avatar_url)
    return profile


def _page_context(request: Request, session: SessionContext, **extra) -> dict:
    context = {
        "request": request,
        "session": session,
        "message": request.query_params.get("message"),
        "message_class": request.query_params.get("message_class"),
    }
    context.update(extra)
    return context


# -------- HTML pages --------


@app.get("/")
def homepage(
    request: Request,
    q: str | None = Query(default=None),
    category: str = Query(default=ALL_CATEGORIES),
    view: str = Query(default="grid"),
    year: int | None = Query(default=None, ge=1),
    month: int | None = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    catalog = load_catalog(db)
    entries = filter_catalog(catalog.entries, q, category)
    grid = None
    if view == "calendar":
        grid_year, grid_month = _resolve_month(year, month)
        grid = build_month_grid(
            grid_year, grid_month, entries, first_weekday=settings.first_weekday
        )
    context = _page_context(
        request,
        session,
        entries=entries,
        grid=grid,
        view="calendar" if grid else "grid",
        search=q or "",
        category=category,
        categories=crud.list_categories(db),
        reconciler=_reconciler_for(db, session),
    )
    if catalog.notification:
        context["message"] = catalog.notification.description
        context["message_class"] = catalog.notification.message_class
    return _no_cache(templates.TemplateResponse(request, "home.html", context))


@app.get("/past")
def past_events_page(
    request: Request,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    result = load_past_events(db)
    context = _page_context(
        request, session, heading="Past Events", sections=[("", result.entries)]
    )
    if result.notification:
        context["message"] = result.notification.description
        context["message_class"] = result.notification.message_class
    return templates.TemplateResponse(request, "event_list.html", context)


@app.get("/favorites")
def favorites_page(
    request: Request,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    if not session.is_authenticated:
        return RedirectResponse(url="/sign-in?next=/favorites", status_code=303)
    result = load_favorite_events(db, session.profile)
    context = _page_context(
        request, session, heading="Favorite Events", sections=[("", result.entries)]
    )
    if result.notification:
        context["message"] = result.notification.description
        context["message_class"] = result.notification.message_class
    return templates.TemplateResponse(request, "event_list.html", context)


@app.get("/my-events")
def my_events_page(
    request: Request,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    if not session.is_authenticated:
        return RedirectResponse(url="/sign-in?next=/my-events", status_code=303)
    mine = load_my_events(db, session.profile)
    sections = [("Attending", mine.attending), ("Attended", mine.attended)]
    if session.is_admin:
        sections.insert(0, ("Organizing", mine.organized))
    context = _page_context(request, session, heading="My Events", sections=sections)
    if mine.notification:
        context["message"] = mine.notification.description
        context["message_class"] = mine.notification.message_class
    return templates.TemplateResponse(request, "event_list.html", context)


@app.get("/event/create")
def event_create_page(
    request: Request,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    if not session.can(CREATE_EVENT):
        raise PermissionDenied("Only administrators can create events")
    context = _page_context(request, session, categories=crud.list_categories(db))
    return templates.TemplateResponse(request, "event_create.html", context)


@app.post("/events")
def submit_event(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    location: str = Form(""),
    start_time: str = Form(""),
    end_time: str = Form(""),
    max_attendees: str | None = Form(None),
    image_url: str | None = Form(None),
    tags: str | None = Form(None),
    category_id: str | None = Form(None),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    form = EventForm(
        title=title,
        description=description,
        location=location,
        start_time=start_time,
        end_time=end_time,
        max_attendees=max_attendees,
        image_url=image_url,
        tags=tags,
        category_id=category_id,
    )
    try:
        event = create_event_from_form(
            db, session, form, store_image=lambda: _store_image(image)
        )
    except (ValidationFailed, PermissionDenied, NotSignedIn) as exc:
        context = _page_context(
            request,
            session,
            categories=crud.list_categories(db),
            form=form,
            message=exc.message,
            message_class="alert-danger",
        )
        return templates.TemplateResponse(
            request, "event_create.html", context, status_code=exc.status_code
        )
    return _redirect_with(f"/e/{event.id}", success("Event created successfully"))


@app.get("/e/{event_id}")
def event_page(
    event_id: str,
    request: Request,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    surface = EventDetailSurface(db, event_id, session).load()
    reconciler = _reconciler_for(db, session)
    context = _page_context(
        request,
        session,
        surface=surface,
        event=surface.event,
        categories=crud.list_categories(db) if session.can(EDIT_EVENT) else [],
        is_registered=bool(reconciler and reconciler.is_registered(event_id)),
        is_favorited=bool(reconciler and reconciler.is_favorited(event_id)),
    )
    if surface.notifications and not context["message"]:
        context["message"] = surface.notifications[0].description
        context["message_class"] = surface.notifications[0].message_class
    status_code = 404 if surface.not_found else 200
    return _no_cache(
        templates.TemplateResponse(
            request, "event.html", context, status_code=status_code
        )
    )


@app.post("/e/{event_id}/register")
def register_toggle(
    event_id: str,
    next_url: str | None = Form(None, alias="next"),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    if not session.is_authenticated:
        return RedirectResponse(url=f"/sign-in?next=/e/{event_id}", status_code=303)
    result = _toggle_registration(db, session, event_id)
    return _redirect_with(_safe_next(next_url, f"/e/{event_id}"), result.notification)


@app.post("/e/{event_id}/favorite")
def favorite_toggle(
    event_id: str,
    next_url: str | None = Form(None, alias="next"),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    if not session.is_authenticated:
        return RedirectResponse(url=f"/sign-in?next=/e/{event_id}", status_code=303)
    result = _toggle_favorite(db, session, event_id)
    return _redirect_with(_safe_next(next_url, f"/e/{event_id}"), result.notification)


@app.post("/e/{event_id}/comments")
def post_comment(
    event_id: str,
    content: str = Form(""),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    surface = EventDetailSurface(db, event_id, session).load()
    if surface.not_found:
        raise NotFound("Event not found")
    try:
        notification = surface.post_comment(content)
    except (ValidationFailed, NotSignedIn) as exc:
        notification = exc.notification
    return _redirect_with(f"/e/{event_id}#discussion", notification)


@app.post("/e/{event_id}/edit")
def edit_event(
    event_id: str,
    title: str = Form(""),
    description: str = Form(""),
    location: str = Form(""),
    start_time: str = Form(""),
    end_time: str = Form(""),
    max_attendees: str | None = Form(None),
    image_url: str | None = Form(None),
    tags: str | None = Form(None),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    surface = EventDetailSurface(db, event_id, session).load()
    if surface.not_found:
        raise NotFound("Event not found")
    form = EventForm(
        title=title,
        description=description,
        location=location,
        start_time=start_time,
        end_time=end_time,
        max_attendees=max_attendees,
        image_url=image_url,
        tags=tags,
    )
    try:
        notification = surface.submit_edit(
            form, store_image=lambda: _store_image(image)
        )
    except (ValidationFailed, PermissionDenied) as exc:
        notification = exc.notification
    return _redirect_with(f"/e/{event_id}", notification)


@app.post("/e/{event_id}/delete")
def delete_event_page(
    event_id: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    notification = delete_event(db, session, event_id)
    return _redirect_with("/", notification)


@app.get("/profile")
def profile_page(
    request: Request,
    session: SessionContext = Depends(get_session_context),
):
    if not session.is_authenticated:
        return RedirectResponse(url="/sign-in?next=/profile", status_code=303)
    context = _page_context(request, session, profile=session.profile)
    return _no_cache(templates.TemplateResponse(request, "profile.html", context))


@app.post("/profile")
def profile_submit(
    full_name: str = Form(""),
    bio: str | None = Form(None),
    department: str | None = Form(None),
    avatar: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    if not session.is_authenticated:
        return RedirectResponse(url="/sign-in?next=/profile", status_code=303)

    def store_avatar() -> str | None:
        if avatar is None or not avatar.filename:
            return None
        if not session.can(UPLOAD_IMAGE):
            raise PermissionDenied("You cannot upload images")
        return _store_image(avatar, folder="avatars")

    try:
        _apply_profile_update(
            db,
            session.profile,
            full_name=full_name,
            bio=bio,
            department=department,
            store_avatar=store_avatar,
        )
    except (ValidationFailed, PermissionDenied) as exc:
        return _redirect_with("/profile", exc.notification)
    return _redirect_with("/profile", success("Profile updated successfully"))


@app.get("/sign-in")
def sign_in_page(
    request: Request,
    next_url: str | None = Query(None, alias="next"),
    session: SessionContext = Depends(get_session_context),
):
    context = _page_context(request, session, next_url=_safe_next(next_url, "/"))
    return templates.TemplateResponse(request, "sign_in.html", context)


@app.post("/sign-in")
def sign_in_submit(
    request: Request,
    token: str = Form(""),
    next_url: str | None = Form(None, alias="next"),
    db: Session = Depends(get_db),
):
    cleaned = token.strip()
    profile = crud.get_profile_by_token(db, cleaned)
    if profile is None:
        context = _page_context(
            request,
            SessionContext.anonymous(),
            next_url=_safe_next(next_url, "/"),
            message="Invalid access token",
            message_class="alert-danger",
        )
        return templates.TemplateResponse(
            request, "sign_in.html", context, status_code=401
        )
    logger.info("Signed in user %s", profile.user_id)
    response = _redirect_with(
        _safe_next(next_url, "/"), success(f"Welcome back, {profile.full_name}")
    )
    response.set_cookie(
        settings.cookie_name, cleaned, httponly=True, samesite="lax", path="/"
    )
    return response


@app.post("/sign-out")
def sign_out_submit(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    if session.is_authenticated:
        sign_out(db, session.profile)
        session.invalidate()
    response = _redirect_with("/", success("You have been signed out"))
    response.delete_cookie(settings.cookie_name, path="/")
    return response


# -------- JSON API --------


@app.get("/api/v1/me")
def api_get_me(session: SessionContext = Depends(get_session_context)):
    profile = _require_signed_in(session)
    return {
        "profile": serialize_profile(profile),
        "capabilities": sorted(session.capabilities),
    }


@app.patch("/api/v1/me")
def api_update_me(
    payload: ProfileUpdatePayload,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    profile = _apply_profile_update(
        db,
        _require_signed_in(session),
        full_name=payload.full_name,
        bio=payload.bio,
        department=payload.department,
    )
    return {
        "profile": serialize_profile(profile),
        "notification": success("Profile updated successfully").as_dict(),
    }


@app.post("/api/v1/me/avatar")
def api_upload_avatar(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    profile = _require_signed_in(session)
    if not session.can(UPLOAD_IMAGE):
        raise PermissionDenied("You cannot upload images")
    avatar_url = _store_image(file, folder="avatars")
    if avatar_url is None:
        raise ValidationFailed("Please select an image file")
    profile = crud.set_avatar_url(db, profile, avatar_url)
    return {
        "profile": serialize_profile(profile),
        "notification": success("Avatar updated successfully").as_dict(),
    }


@app.post("/api/v1/auth/sign-out", status_code=204)
def api_sign_out(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    profile = _require_signed_in(session)
    sign_out(db, profile)
    session.invalidate()
    return Response(status_code=204)


@app.get("/api/v1/categories")
def api_list_categories(db: Session = Depends(get_db)):
    return {
        "categories": [serialize_category(category) for category in crud.list_categories(db)]
    }


@app.get("/api/v1/events")
def api_list_events(
    q: str | None = Query(None),
    category: str = Query(ALL_CATEGORIES),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    catalog = load_catalog(db)
    entries = filter_catalog(catalog.entries, q, category)
    return {
        "events": _serialize_entries(entries, _reconciler_for(db, session)),
        "filters": {"q": q or "", "category": category},
        "notification": catalog.notification.as_dict() if catalog.notification else None,
    }


@app.get("/api/v1/events/past")
def api_list_past_events(db: Session = Depends(get_db)):
    result = load_past_events(db)
    return {
        "events": [serialize_entry(entry) for entry in result.entries],
        "notification": result.notification.as_dict() if result.notification else None,
    }


@app.get("/api/v1/events/calendar")
def api_calendar(
    year: int | None = Query(None, ge=1),
    month: int | None = Query(None, ge=1, le=12),
    q: str | None = Query(None),
    category: str = Query(ALL_CATEGORIES),
    db: Session = Depends(get_db),
):
    grid_year, grid_month = _resolve_month(year, month)
    catalog = load_catalog(db)
    entries = filter_catalog(catalog.entries, q, category)
    grid = build_month_grid(
        grid_year, grid_month, entries, first_weekday=settings.first_weekday
    )
    prev_year, prev_month = grid.previous
    next_year, next_month = grid.next
    return {
        "year": grid.year,
        "month": grid.month,
        "title": grid.title,
        "weekdays": grid.weekday_names,
        "previous": {"year": prev_year, "month": prev_month},
        "next": {"year": next_year, "month": next_month},
        "days": [
            {
                "date": cell.day.isoformat(),
                "is_padding": cell.is_padding,
                "events": [
                    {"id": entry.id, "title": entry.event.title}
                    for entry in cell.entries
                ],
            }
            for cell in grid.cells
        ],
        "notification": catalog.notification.as_dict() if catalog.notification else None,
    }


@app.post("/api/v1/events", status_code=201)
def api_create_event(
    payload: EventCreatePayload,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    event = create_event_from_form(db, session, payload.to_form())
    return {
        "event": serialize_event(event),
        "notification": success("Event created successfully").as_dict(),
    }


@app.get("/api/v1/events/{event_id}")
def api_get_event(
    event_id: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    surface = EventDetailSurface(db, event_id, session).load()
    if surface.not_found:
        raise NotFound("Event not found")
    reconciler = _reconciler_for(db, session)
    payload = {
        "event": surface.event,
        "attendee_count": surface.attendee_count,
        "discussions": surface.discussions,
        "attendees": surface.attendees,
        "is_past": surface.is_past,
    }
    if reconciler is not None:
        payload["registered"] = reconciler.is_registered(event_id)
        payload["favorited"] = reconciler.is_favorited(event_id)
    return payload


@app.patch("/api/v1/events/{event_id}")
def api_update_event(
    event_id: str,
    payload: EventUpdatePayload,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    surface = EventDetailSurface(db, event_id, session).load()
    if surface.not_found:
        raise NotFound("Event not found")
    notification = surface.submit_edit(payload.to_form())
    return {
        "event": surface.event,
        "attendee_count": surface.attendee_count,
        "notification": notification.as_dict(),
    }


@app.delete("/api/v1/events/{event_id}", status_code=204)
def api_delete_event(
    event_id: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    delete_event(db, session, event_id)
    return Response(status_code=204)


@app.get("/api/v1/events/{event_id}/discussions")
def api_list_discussions(
    event_id: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    _require_event(db, event_id)
    surface = EventDetailSurface(db, event_id, session)
    return {"discussions": surface.fetch_discussions()}


@app.post("/api/v1/events/{event_id}/discussions", status_code=201)
def api_post_discussion(
    event_id: str,
    payload: CommentPayload,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    surface = EventDetailSurface(db, event_id, session).load()
    if surface.not_found:
        raise NotFound("Event not found")
    notification = surface.post_comment(payload.content)
    return {
        "discussions": surface.discussions,
        "notification": notification.as_dict(),
    }


@app.get("/api/v1/events/{event_id}/attendees")
def api_list_attendees(
    event_id: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    _require_event(db, event_id)
    surface = EventDetailSurface(db, event_id, session)
    return {"attendees": surface.fetch_attendees()}


@app.post("/api/v1/events/{event_id}/registration")
def api_toggle_registration(
    event_id: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    result = _toggle_registration(db, session, event_id)
    return JSONResponse(
        result.as_dict(), status_code=TOGGLE_STATUS.get(result.outcome, 200)
    )


@app.post("/api/v1/events/{event_id}/favorite")
def api_toggle_favorite(
    event_id: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    result = _toggle_favorite(db, session, event_id)
    return JSONResponse(
        result.as_dict(), status_code=TOGGLE_STATUS.get(result.outcome, 200)
    )


@app.post("/api/v1/events/{event_id}/videos", status_code=201)
def api_upload_video(
    event_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    _require_signed_in(session)
    surface = EventDetailSurface(db, event_id, session).load()
    if surface.not_found:
        raise NotFound("Event not found")
    if not session.can(UPLOAD_VIDEO):
        raise PermissionDenied("Only administrators can upload videos")
    video_url = upload_video(
        default_storage(),
        filename=file.filename or "",
        content_type=file.content_type,
        data=file.file.read(),
    )
    notification = surface.attach_video(video_url)
    return {
        "video_url": video_url,
        "event": surface.event,
        "notification": notification.as_dict(),
    }


@app.post("/api/v1/uploads/images", status_code=201)
def api_upload_image(
    file: UploadFile = File(...),
    session: SessionContext = Depends(get_session_context),
):
    _require_signed_in(session)
    if not session.can(UPLOAD_IMAGE):
        raise PermissionDenied("You cannot upload images")
    image_url = _store_image(file)
    if image_url is None:
        raise ValidationFailed("Please select an image file")
    return {
        "url": image_url,
        "notification": success("Image uploaded successfully").as_dict(),
    }


@app.get("/api/v1/me/events")
def api_my_events(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    profile = _require_signed_in(session)
    mine = load_my_events(db, profile)
    return {
        "organized": [serialize_entry(entry) for entry in mine.organized],
        "attending": [serialize_entry(entry) for entry in mine.attending],
        "attended": [serialize_entry(entry) for entry in mine.attended],
        "notification": mine.notification.as_dict() if mine.notification else None,
    }


@app.get("/api/v1/me/favorites")
def api_my_favorites(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
):
    profile = _require_signed_in(session)
    result = load_favorite_events(db, profile)
    return {
        "events": [
            serialize_entry(entry, favorited=True) for entry in result.entries
        ],
        "notification": result.notification.as_dict() if result.notification else None,
    }

