"""
STFilter — thread filters for the forum view.

The engine only needs two things from a filter (the ThreadFilter protocol):

    get_filtered_thread_ids(posts, apply_filter, thread_of) -> set of thread ids
    get_filtered_thread_counts()                           -> {label: count}

ForumFilter is the stock implementation behind the filter menu:

    all             every thread
    open            no post in the thread has status Closed
    closed          some post in the thread has status Closed
    mine            the current user posted somewhere in the thread
    item            the thread's first post is about an item (has an xpath)
    general         the thread's first post has no xpath
    needing-action  open, and the newest post is by someone else

Usage:
    f = ForumFilter(user=ForumUser(id=761), mode="open")
    ids = f.get_filtered_thread_ids(posts, True, forest.thread_of)
    f.get_filtered_thread_counts()   # {"Total": 12, "Open": 7, ...}

Posts are expected newest first, as the server sends them; "newest post in a
thread" is the first one met.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping, Protocol, Sequence

from STTypes import ForumUser, Post

log = logging.getLogger("stforum.filter")

STATUS_CLOSED = "Closed"


class FilterMode(str, Enum):
    ALL            = "all"
    OPEN           = "open"
    CLOSED         = "closed"
    MINE           = "mine"
    ITEM           = "item"
    GENERAL        = "general"
    NEEDING_ACTION = "needing-action"


class ThreadFilter(Protocol):
    def get_filtered_thread_ids(
        self,
        posts: Sequence[Post],
        apply_filter: bool,
        thread_of: Mapping[int, str],
    ) -> set[str]: ...

    def get_filtered_thread_counts(self) -> dict[str, int]: ...


class _ThreadFacts:
    """What the predicates need to know about one thread."""

    __slots__ = ("first", "has_root", "newest", "closed", "posters")

    def __init__(self):
        self.first:   Post | None = None
        self.has_root = False
        self.newest:  Post | None = None
        self.closed   = False
        self.posters: set[int] = set()


def _collect(posts: Sequence[Post], thread_of: Mapping[int, str]) -> dict[str, _ThreadFacts]:
    facts: dict[str, _ThreadFacts] = {}
    for post in posts:
        thread_id = thread_of.get(post.id) or f"{post.locale}|{post.id}"
        f = facts.get(thread_id)
        if f is None:
            f = facts[thread_id] = _ThreadFacts()
            f.newest = post
        # the root when it is in the batch, else the oldest post seen
        if not f.has_root:
            f.first = post
            f.has_root = thread_id == f"{post.locale}|{post.id}"
        if post.forum_status == STATUS_CLOSED:
            f.closed = True
        if post.poster_id is not None:
            f.posters.add(post.poster_id)
    return facts


class ForumFilter:
    """
    Menu-driven thread filter.

    Args:
        user: The viewing user; needed by "mine" and "needing-action".
              Without a user those modes match nothing.
        mode: Initial FilterMode (or its string value).
    """

    def __init__(self, user: ForumUser | None = None, mode: FilterMode | str = FilterMode.ALL):
        self.user = user
        self.mode = FilterMode(mode)
        self._counts: dict[str, int] = {}

    def set_mode(self, mode: FilterMode | str) -> None:
        self.mode = FilterMode(mode)

    # ── Predicates ─────────────────────────────────────────────────────────────

    def _is_mine(self, f: _ThreadFacts) -> bool:
        return self.user is not None and self.user.id in f.posters

    def _matches(self, mode: FilterMode, f: _ThreadFacts) -> bool:
        if mode is FilterMode.ALL:
            return True
        if mode is FilterMode.OPEN:
            return not f.closed
        if mode is FilterMode.CLOSED:
            return f.closed
        if mode is FilterMode.MINE:
            return self._is_mine(f)
        if mode is FilterMode.ITEM:
            return bool(f.first and f.first.xpath)
        if mode is FilterMode.GENERAL:
            return not (f.first and f.first.xpath)
        if mode is FilterMode.NEEDING_ACTION:
            return (
                not f.closed
                and self.user is not None
                and f.newest is not None
                and f.newest.poster_id != self.user.id
            )
        return False

    # ── ThreadFilter protocol ──────────────────────────────────────────────────

    def get_filtered_thread_ids(
        self,
        posts: Sequence[Post],
        apply_filter: bool,
        thread_of: Mapping[int, str],
    ) -> set[str]:
        facts = _collect(posts, thread_of)
        self._counts = {
            "Total":   len(facts),
            "Open":    sum(1 for f in facts.values() if not f.closed),
            "Closed":  sum(1 for f in facts.values() if f.closed),
            "Mine":    sum(1 for f in facts.values() if self._is_mine(f)),
            "Item":    sum(1 for f in facts.values() if f.first and f.first.xpath),
            "General": sum(1 for f in facts.values() if not (f.first and f.first.xpath)),
        }
        if not apply_filter:
            return set(facts)
        selected = {tid for tid, f in facts.items() if self._matches(self.mode, f)}
        log.debug(f"Filter {self.mode.value!r}: {len(selected)} of {len(facts)} threads")
        return selected

    def get_filtered_thread_counts(self) -> dict[str, int]:
        return dict(self._counts)
