from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from ember import services
from ember.config import get_settings
from ember.db import get_session, init_db
from ember.errors import EmberError
from ember.messaging import canonical_id
from ember.schedule import LocalStorage

log = logging.getLogger(__name__)

_ember: services.Ember | None = None


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def ember_lifespan(server: FastMCP) -> AsyncIterator[None]:
    global _ember
    settings = get_settings()
    init_db(settings.database_url or None, seed_demo=settings.seed_demo)
    _ember = services.build_services(
        get_session, storage=LocalStorage(settings.storage_path), seed_demo=settings.seed_demo,
    )
    yield


mcp = FastMCP(
    "Ember",
    instructions=(
        "Ember is the community directory, feed and messaging layer of a startup accelerator. "
        "Start with list_profiles() to find Founders and Funders, list_posts() for the feed, "
        "and list_conversations(uid) to see who a user talks to."
    ),
    lifespan=ember_lifespan,
    json_response=True,
)


def _services() -> services.Ember:
    if _ember is None:
        raise RuntimeError("Ember services are not initialised")
    return _ember


def _dump(items) -> list[dict]:
    return [i.model_dump(mode="json") for i in items]


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("ember://overview")
def ember_overview() -> str:
    """Overview of Ember: data model and conversation lifecycle."""
    return json.dumps({
        "system": "Ember: accelerator community directory, feed and messaging",
        "data_model": {
            "profile": "A Founder or Funder. Identified by uid; email is unique.",
            "post": "Public feed entry with a snapshot of the author's name, photo and role at post time.",
            "conversation": "Two-party thread. Id is both uids sorted and joined with '_'.",
            "message": "Append-only entry in a conversation, ordered by seq.",
        },
        "conversation_states": {
            "transient": "Participants known, no message sent yet. Not listed.",
            "persisted": "At least one message. Listed for both participants.",
        },
        "roles": ["Founder", "Funder"],
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools: Directory
# ---------------------------------------------------------------------------


@mcp.tool()
def list_profiles(
    role: str | None = None, search: str | None = None, industry: str | None = None,
    funding_stage: str | None = None, preferred_stage: str | None = None,
) -> list[dict]:
    """List community profiles.

    Args:
        role: Founder or Funder.
        search: Case-insensitive substring of the full name.
        industry: Exact Founder industry.
        funding_stage: Exact Founder funding stage.
        preferred_stage: Exact Funder preferred stage.
    """
    ember = _services()
    return _dump(services.filter_profiles(
        ember.identity.list_profiles(), role=role, search=search, industry=industry,
        funding_stage=funding_stage, preferred_stage=preferred_stage,
    ))


@mcp.tool()
def get_profile(uid: str) -> dict:
    """Get a single profile by uid."""
    profile = _services().identity.get_profile(uid)
    if profile is None:
        return {"error": f"Profile {uid} not found"}
    return profile.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Tools: Feed & Messages
# ---------------------------------------------------------------------------


@mcp.tool()
def list_posts(role: str | None = None) -> list[dict]:
    """List feed posts newest first, optionally only those by Founders or Funders."""
    return _dump(services.filter_posts(_services().feed.list_posts(), role))


@mcp.tool()
def create_post(author_uid: str, content: str) -> dict:
    """Publish a post on behalf of a profile."""
    try:
        return _services().feed.append(author_uid, content).model_dump(mode="json")
    except EmberError as exc:
        return {"error": exc.message}


@mcp.tool()
def list_conversations(uid: str) -> list[dict]:
    """Conversations a profile takes part in, most recent activity first."""
    return _dump(_services().conversations.list_for_user(uid))


@mcp.tool()
def list_messages(conversation_id: str) -> list[dict]:
    """All messages of a conversation in the order they were sent."""
    return _dump(_services().messages.list_messages(conversation_id))


@mcp.tool()
def send_message(sender_uid: str, recipient_uid: str, text: str) -> dict:
    """Send a direct message; the first message starts the conversation."""
    try:
        conversation_id = canonical_id(sender_uid, recipient_uid)
        return _services().messages.append(conversation_id, sender_uid, text).model_dump(mode="json")
    except (EmberError, ValueError) as exc:
        return {"error": str(exc)}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the Ember MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()
