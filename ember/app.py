from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query

from ember.config import get_settings
from ember.db import get_session, init_db
from ember.errors import AuthenticationFailed, DuplicateIdentity, EmberError, NotFound
from ember.schedule import LocalStorage
from ember.schemas import (
    ConversationOut,
    EventCreate,
    FacetsOut,
    MessageCreate,
    MessageOut,
    PostCreate,
    PostOut,
    ProfileOut,
    ProfileUpdate,
    SignInRequest,
    SignUpRequest,
    UserEvent,
)
from ember.services import Ember, build_services, facet_values, filter_posts, filter_profiles

log = logging.getLogger(__name__)

_services: Ember | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _services
    settings = get_settings()
    init_db(settings.database_url or None, seed_demo=settings.seed_demo)
    _services = build_services(
        get_session, storage=LocalStorage(settings.storage_path), seed_demo=settings.seed_demo,
    )
    yield
    _services = None


app = FastAPI(
    title="Ember",
    version="0.1.0",
    description=(
        "Data-access API for the Ember accelerator community: Founder and Funder "
        "profiles, the public feed, direct messages and a personal schedule. "
        "All endpoints return JSON. Sign-in is a mock that accepts any password."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Sign up, sign in and out of the single active session."},
        {"name": "Profiles", "description": "Browse and edit the Founder and Funder directory."},
        {"name": "Feed", "description": "Read and publish posts."},
        {"name": "Messages", "description": "Two-party conversations and their messages."},
        {"name": "Schedule", "description": "Client-local personal events."},
        {"name": "Admin", "description": "Administrative operations."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def get_services() -> Ember:
    if _services is None:
        raise RuntimeError("Ember services are not initialised")
    return _services


_STATUS_BY_ERROR = (
    (DuplicateIdentity, 409),
    (NotFound, 404),
    (AuthenticationFailed, 401),
)


def _http_error(exc: Exception) -> HTTPException:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status, str(exc))
    return HTTPException(400, str(exc))


def _require_user(ember: Ember) -> ProfileOut:
    user = ember.auth.current_user
    if user is None:
        raise HTTPException(401, "Not signed in")
    return user


# ---------------------------------------------------------------------------
# Routes: Auth
# ---------------------------------------------------------------------------


@app.post("/api/auth/signup", response_model=ProfileOut, status_code=201,
          tags=["Auth"], summary="Create a profile and make it the active session")
async def sign_up(body: SignUpRequest, ember: Ember = Depends(get_services)):
    try:
        return ember.auth.sign_up(body.email, body.role, body.password)
    except (EmberError, ValueError) as exc:
        raise _http_error(exc) from exc


@app.post("/api/auth/signin", response_model=ProfileOut,
          tags=["Auth"], summary="Sign in by email (any password is accepted)")
async def sign_in(body: SignInRequest, ember: Ember = Depends(get_services)):
    try:
        return ember.auth.sign_in(body.email, body.password)
    except EmberError as exc:
        raise _http_error(exc) from exc


@app.post("/api/auth/provider/{provider}", response_model=ProfileOut,
          tags=["Auth"], summary="Mock social sign-in (google, apple)")
async def sign_in_with_provider(provider: str, ember: Ember = Depends(get_services)):
    try:
        return ember.auth.sign_in_with_provider(provider)
    except EmberError as exc:
        raise _http_error(exc) from exc


@app.post("/api/auth/signout", tags=["Auth"], summary="Clear the active session")
async def sign_out(ember: Ember = Depends(get_services)):
    ember.auth.sign_out()
    return {"ok": True}


@app.get("/api/me", response_model=ProfileOut, tags=["Auth"], summary="The signed-in profile")
async def me(ember: Ember = Depends(get_services)):
    user = ember.auth.current_user
    if user is None:
        raise HTTPException(404, "No active session")
    return user


# ---------------------------------------------------------------------------
# Routes: Profiles (facets before parameterized to avoid route shadowing)
# ---------------------------------------------------------------------------


@app.get("/api/profiles", response_model=list[ProfileOut],
         tags=["Profiles"], summary="List profiles with directory filters")
async def list_profiles(
    role: str | None = Query(None, description="Founder or Funder"),
    search: str | None = Query(None, description="Case-insensitive substring of the full name"),
    industry: str | None = Query(None),
    funding_stage: str | None = Query(None),
    preferred_stage: str | None = Query(None),
    ember: Ember = Depends(get_services),
):
    return filter_profiles(
        ember.identity.list_profiles(), role=role, search=search, industry=industry,
        funding_stage=funding_stage, preferred_stage=preferred_stage,
    )


@app.get("/api/profiles/facets", response_model=FacetsOut,
         tags=["Profiles"], summary="Distinct directory filter values")
async def profile_facets(ember: Ember = Depends(get_services)):
    return facet_values(ember.identity.list_profiles())


@app.get("/api/profiles/{uid}", response_model=ProfileOut, tags=["Profiles"], summary="Get one profile")
async def get_profile(uid: str, ember: Ember = Depends(get_services)):
    profile = ember.identity.get_profile(uid)
    if profile is None:
        raise HTTPException(404, "Profile not found")
    return profile


@app.put("/api/profiles/{uid}", response_model=ProfileOut,
         tags=["Profiles"], summary="Update profile fields (partial update, null fields ignored)")
async def update_profile(uid: str, body: ProfileUpdate, ember: Ember = Depends(get_services)):
    try:
        return ember.identity.update_profile(uid, body.model_dump(exclude_unset=True))
    except (EmberError, ValueError) as exc:
        raise _http_error(exc) from exc


# ---------------------------------------------------------------------------
# Routes: Feed
# ---------------------------------------------------------------------------


@app.get("/api/posts", response_model=list[PostOut], tags=["Feed"], summary="Posts, newest first")
async def list_posts(
    role: str | None = Query(None, description="All, Founder or Funder"),
    ember: Ember = Depends(get_services),
):
    return filter_posts(ember.feed.list_posts(), role)


@app.post("/api/posts", response_model=PostOut, status_code=201,
          tags=["Feed"], summary="Publish a post as the signed-in user")
async def create_post(body: PostCreate, ember: Ember = Depends(get_services)):
    user = _require_user(ember)
    try:
        return ember.feed.append(user, body.content)
    except (EmberError, ValueError) as exc:
        raise _http_error(exc) from exc


# ---------------------------------------------------------------------------
# Routes: Messages
# ---------------------------------------------------------------------------


@app.get("/api/conversations", response_model=list[ConversationOut],
         tags=["Messages"], summary="Conversations a user takes part in")
async def list_conversations(
    uid: str | None = Query(None, description="Defaults to the signed-in user"),
    ember: Ember = Depends(get_services),
):
    if uid is None:
        uid = _require_user(ember).uid
    return ember.conversations.list_for_user(uid)


@app.get("/api/conversations/with/{other_uid}", response_model=ConversationOut,
         tags=["Messages"], summary="Open the conversation with another user (transient until first message)")
async def open_conversation(other_uid: str, ember: Ember = Depends(get_services)):
    user = _require_user(ember)
    try:
        return ember.conversations.open(user.uid, other_uid)
    except (EmberError, ValueError) as exc:
        raise _http_error(exc) from exc


@app.get("/api/conversations/{conversation_id}/messages", response_model=list[MessageOut],
         tags=["Messages"], summary="Messages of a conversation in order")
async def list_messages(conversation_id: str, ember: Ember = Depends(get_services)):
    return ember.messages.list_messages(conversation_id)


@app.post("/api/conversations/{conversation_id}/messages", response_model=MessageOut, status_code=201,
          tags=["Messages"], summary="Send a message as the signed-in user")
async def send_message(conversation_id: str, body: MessageCreate, ember: Ember = Depends(get_services)):
    user = _require_user(ember)
    try:
        return ember.messages.append(conversation_id, user.uid, body.text)
    except (EmberError, ValueError) as exc:
        raise _http_error(exc) from exc


# ---------------------------------------------------------------------------
# Routes: Schedule
# ---------------------------------------------------------------------------


@app.get("/api/schedule", response_model=list[UserEvent], tags=["Schedule"], summary="Personal events in date order")
async def list_events(ember: Ember = Depends(get_services)):
    return ember.schedule.list_events()


@app.post("/api/schedule", response_model=UserEvent, status_code=201,
          tags=["Schedule"], summary="Add a personal event")
async def add_event(body: EventCreate, ember: Ember = Depends(get_services)):
    try:
        return ember.schedule.add_event(body.title, body.date, body.time, body.description)
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/schedule/{event_id}", tags=["Schedule"], summary="Delete a personal event")
async def delete_event(event_id: str, ember: Ember = Depends(get_services)):
    if not ember.schedule.delete_event(event_id):
        raise HTTPException(404, "Event not found")
    return {"ok": True}


@app.delete("/api/schedule", tags=["Schedule"], summary="Delete all personal events")
async def clear_events(ember: Ember = Depends(get_services)):
    ember.schedule.clear_events()
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Reset
# ---------------------------------------------------------------------------


@app.delete("/api/reset", tags=["Admin"], summary="Delete all data and sign out")
async def reset(ember: Ember = Depends(get_services)):
    ember.reset()
    return {"ok": True}


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    settings = get_settings()
    uvicorn.run("ember.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
