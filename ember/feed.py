"""Post ledger: the append-only public feed."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ember.errors import EmptyContent, NotFound
from ember.models import Post, Profile
from ember.observers import ObserverRegistry, Unsubscribe
from ember.schemas import AuthorSnapshot, PostOut, ProfileOut
from ember.utils import is_blank, utcnow

log = logging.getLogger(__name__)

POSTS_TOPIC = "posts"


def post_out(row: Post) -> PostOut:
    return PostOut(
        id=row.id,
        author_id=row.author_id,
        author=AuthorSnapshot(
            full_name=row.author_full_name, photo_url=row.author_photo_url, role=row.author_role,
        ),
        content=row.content,
        timestamp=row.timestamp,
    )


class PostLedger:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: ObserverRegistry,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._registry = registry
        self._clock = clock

    def append(self, author: ProfileOut | str, content: str) -> PostOut:
        """Publish *content* as *author*, snapshotting the author's display fields."""
        if is_blank(content):
            raise EmptyContent("Post content must not be empty.")
        author_id = author if isinstance(author, str) else author.uid
        with self._session_factory() as session:
            profile = session.get(Profile, author_id)
            if profile is None:
                raise NotFound(f"Profile {author_id} not found")
            row = Post(
                author_id=profile.uid,
                author_full_name=profile.full_name,
                author_photo_url=profile.photo_url,
                author_role=profile.role,
                content=content,
                timestamp=self._clock(),
            )
            session.add(row)
            session.commit()
            post = post_out(row)
            snapshot = self._snapshot(session)
        self._registry.publish(POSTS_TOPIC, snapshot)
        return post

    def list_posts(self) -> list[PostOut]:
        """All posts, newest first."""
        with self._session_factory() as session:
            return self._snapshot(session)

    def subscribe(self, callback: Callable[[list[PostOut]], None]) -> Unsubscribe:
        """Deliver the full feed now and again after every append."""
        return self._registry.subscribe(POSTS_TOPIC, callback, initial=self.list_posts())

    def _snapshot(self, session: Session) -> list[PostOut]:
        rows = session.execute(select(Post).order_by(Post.timestamp.desc(), Post.id.desc())).scalars().all()
        known = set(session.execute(select(Profile.uid)).scalars().all())
        posts = []
        for row in rows:
            if row.author_id not in known:
                log.warning("Dropping post %s: author %s no longer resolves", row.id, row.author_id)
                continue
            posts.append(post_out(row))
        return posts
