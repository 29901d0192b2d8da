"""
STPostStore — the most recently loaded set of forum posts for one locale.

Posts are keyed by post id. The store holds exactly one active locale; asking
it to switch to another locale wipes every post, the feed order and the
update timestamp, so a "de" render can never link to a stale "fr" ancestor.
Sublocale posts ("fr" replies inside an "fr_CA" session) live side by side:
identity is purely the post id.

Usage:
    store = PostStore()
    store.switch_locale("fr_CA")          # True, first locale
    store.update(store.parse(rows))       # validate + merge
    store.get(32034)                      # Post or None
    store.switch_locale("de")             # True, store is now empty

revision increases on every update/reset. ThreadResolver keys its memo on it,
so cached thread ids never outlive the posts they were computed from.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Iterator

from STTypes import Post

log = logging.getLogger("stforum.store")


class PostStore:
    """
    Id-keyed post map for a single active locale.

    Args:
        locale: Initial active locale (optional).
    """

    def __init__(self, locale: str | None = None):
        self._locale: str | None = locale
        self._posts: dict[int, Post] = {}
        self._feed: list[Post] = []
        self._updated_at: int | None = None
        self._revision = 0

    # ── Locale switch guard ────────────────────────────────────────────────────

    def switch_locale(self, locale: str) -> bool:
        """
        Make locale the active one. Returns True if it changed, in which case
        all posts and the update timestamp are cleared.
        """
        if locale == self._locale:
            return False
        log.debug(f"PostStore: locale {self._locale!r} -> {locale!r}, clearing {len(self._posts)} posts")
        self._locale = locale
        self.reset()
        return True

    # ── Core API ───────────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Remove every post and forget when the store was last updated."""
        self._posts.clear()
        self._feed = []
        self._updated_at = None
        self._revision += 1

    def update(self, posts: Iterable[Post]) -> None:
        """
        Merge posts into the store. Same id = server copy wins.

        feed keeps every loaded post in feed order (newest first). The merged
        batch goes to the front in the order supplied; an id it overwrites
        moves with it.
        """
        batch = list(posts)
        fresh = {post.id for post in batch}
        for post in batch:
            self._posts[post.id] = post
        self._feed = batch + [p for p in self._feed if p.id not in fresh]
        self._updated_at = int(time.time() * 1000)
        self._revision += 1
        log.debug(f"PostStore: merged {len(batch)} posts, {len(self._posts)} total (rev {self._revision})")

    def get(self, post_id: int) -> Post | None:
        return self._posts.get(post_id)

    @staticmethod
    def parse(rows: Iterable[dict]) -> list[Post]:
        """
        Validate server rows into Posts.

        Raises:
            STValidationError: on the first malformed row.
        """
        return [Post.from_json(row) for row in rows]

    def posts(self) -> list[Post]:
        return list(self._posts.values())

    # ── Properties ─────────────────────────────────────────────────────────────

    @property
    def locale(self) -> str | None:
        return self._locale

    @property
    def feed(self) -> list[Post]:
        return list(self._feed)

    @property
    def updated_at(self) -> int | None:
        """Epoch millis of the last update(), None if never loaded."""
        return self._updated_at

    @property
    def revision(self) -> int:
        return self._revision

    def __len__(self) -> int:
        return len(self._posts)

    def __contains__(self, post_id: object) -> bool:
        return post_id in self._posts

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts.values())

    def __repr__(self) -> str:
        return f"PostStore(locale={self._locale!r}, posts={len(self._posts)}, rev={self._revision})"
