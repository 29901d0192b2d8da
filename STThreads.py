"""
STThreads — thread identity and per-thread forests for forum posts.

A thread id is "<locale of first post>|<id of first post>". The first post
is found by walking parent links through the PostStore until a post has no
parent or its parent is not loaded. Posts in one thread may carry different
locales (post 32034 is fr_CA, its reply 32036 is fr); the id always uses the
root's locale.

Usage:
    resolver = ThreadResolver(store)
    resolver.resolve_thread_id(post)      # "fr|10"
    resolver.first_post_in_thread(post)   # Post 10
    forest = resolver.build_forest(store.feed)
    forest["fr|10"].nodes[0].children     # [PostNode(11)]

Corruption:
    A parent chain that loops (a post is its own ancestor) raises
    STCyclicThreadError from the walk. build_forest() catches it, logs a
    warning and makes the post its own singleton thread.

Memo:
    Thread ids are memoised per store revision. A successful walk records
    the id for every post it passed through, so the cost of resolving a
    whole batch is O(n) and the answer never depends on call order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from STExceptions import STCyclicThreadError
from STPostStore import PostStore
from STTypes import Post, NO_PARENT

log = logging.getLogger("stforum.threads")


def make_thread_id(post: Post) -> str:
    return f"{post.locale}|{post.id}"


# ── Forest ─────────────────────────────────────────────────────────────────────

@dataclass
class PostNode:
    post:     Post
    children: list[PostNode] = field(default_factory=list)

    def walk(self, depth: int = 0) -> Iterator[tuple[int, Post]]:
        """Depth-first (depth, post) pairs, this node first."""
        yield depth, self.post
        for child in self.children:
            yield from child.walk(depth + 1)


@dataclass
class ThreadForest:
    """
    All posts of one thread in the current batch.

    root is the thread's first post (it may be absent from the batch, e.g.
    an older post that is still in the store). nodes are the top-level
    entries: the root's node when the root is in the batch, plus any post
    whose declared parent is not in the batch.
    """
    thread_id: str
    root:      Post
    nodes:     list[PostNode] = field(default_factory=list)

    def posts(self) -> list[Post]:
        return [post for node in self.nodes for _, post in node.walk()]

    @property
    def post_count(self) -> int:
        return sum(1 for node in self.nodes for _ in node.walk())


@dataclass
class Forest:
    """
    build_forest() result.

    threads:  thread id -> ThreadForest, in first-encounter order.
    thread_of: post id -> thread id for every post in the batch.
    cyclic:   ids of posts whose parent chain was corrupt.
    """
    threads:   dict[str, ThreadForest] = field(default_factory=dict)
    thread_of: dict[int, str]          = field(default_factory=dict)
    cyclic:    list[int]               = field(default_factory=list)

    def __getitem__(self, thread_id: str) -> ThreadForest:
        return self.threads[thread_id]

    def __contains__(self, thread_id: object) -> bool:
        return thread_id in self.threads

    def __len__(self) -> int:
        return len(self.threads)

    def __iter__(self) -> Iterator[str]:
        return iter(self.threads)


# ── Resolver ───────────────────────────────────────────────────────────────────

class ThreadResolver:
    """
    Computes thread ids, thread roots and forests against a PostStore.

    Args:
        store: The session's PostStore. Ancestors are looked up there, so a
               reply can find a root that is not in the batch being built.
    """

    def __init__(self, store: PostStore):
        self._store = store
        self._memo: dict[int, str] = {}
        self._memo_revision = store.revision

    def _check_memo(self) -> None:
        if self._memo_revision != self._store.revision:
            self._memo.clear()
            self._memo_revision = self._store.revision

    # ── Parent walk ────────────────────────────────────────────────────────────

    def _walk(self, post: Post) -> tuple[Post | None, str | None, list[int]]:
        """
        Follow parent links from post.

        Returns (root, memo_hit, path): root is the first post when the walk
        reached one, memo_hit is a thread id found in the memo instead, path
        is every post id visited before stopping.
        """
        budget = max(len(self._store), 1)
        path: list[int] = []
        seen: set[int] = set()
        current = post
        while True:
            cached = self._memo.get(current.id)
            if cached is not None:
                return None, cached, path
            if current.id in seen or len(path) > budget:
                raise STCyclicThreadError(
                    f"Parent chain of post {post.id} loops at post {current.id}",
                    post_id=post.id,
                    hops=len(path),
                )
            seen.add(current.id)
            path.append(current.id)
            if current.parent == NO_PARENT:
                return current, None, path
            parent = self._store.get(current.parent)
            if parent is None:
                return current, None, path
            current = parent

    def first_post_in_thread(self, post: Post) -> Post:
        """
        Walk to the thread's first post. Not memoised: the memo holds ids,
        and the reply path wants the record itself.

        Raises:
            STCyclicThreadError: the chain loops.
        """
        budget = max(len(self._store), 1)
        seen: set[int] = set()
        current = post
        while current.parent != NO_PARENT:
            if current.id in seen or len(seen) > budget:
                raise STCyclicThreadError(
                    f"Parent chain of post {post.id} loops at post {current.id}",
                    post_id=post.id,
                    hops=len(seen),
                )
            seen.add(current.id)
            parent = self._store.get(current.parent)
            if parent is None:
                break
            current = parent
        return current

    def resolve_thread_id(self, post: Post) -> str:
        """
        Thread id of post.

        Raises:
            STCyclicThreadError: the chain loops. Use thread_id_or_singleton()
                                 to get the singleton fallback instead.
        """
        self._check_memo()
        root, cached, path = self._walk(post)
        thread_id = cached if cached is not None else make_thread_id(root)
        for pid in path:
            self._memo[pid] = thread_id
        return thread_id

    def thread_id_or_singleton(self, post: Post) -> tuple[str, bool]:
        """Returns (thread_id, was_cyclic)."""
        try:
            return self.resolve_thread_id(post), False
        except STCyclicThreadError as e:
            log.warning(f"Corrupt thread data: {e.message} after {e.hops} hops; showing post {post.id} on its own")
            return make_thread_id(post), True

    # ── Forest ─────────────────────────────────────────────────────────────────

    def build_forest(self, posts: Iterable[Post]) -> Forest:
        """
        Group posts into one forest per thread.

        Pass 1 resolves every thread id and creates one node per post, so a
        parent can be found no matter where it sits in the input. Pass 2
        attaches each post under its parent node, or directly under the
        thread when the parent is not in this batch.
        """
        batch = list(posts)
        forest = Forest()
        nodes: dict[int, PostNode] = {}

        for post in batch:
            thread_id, cyclic = self.thread_id_or_singleton(post)
            if cyclic:
                forest.cyclic.append(post.id)
            forest.thread_of[post.id] = thread_id
            nodes[post.id] = PostNode(post)
            if thread_id not in forest.threads:
                forest.threads[thread_id] = ThreadForest(thread_id, self._root_for(post, cyclic))

        for post in batch:
            thread_id = forest.thread_of[post.id]
            parent_node = nodes.get(post.parent) if post.parent != NO_PARENT else None
            if (
                parent_node is not None
                and post.parent != post.id
                and forest.thread_of.get(post.parent) == thread_id
            ):
                parent_node.children.append(nodes[post.id])
            else:
                if post.parent != NO_PARENT:
                    log.debug(f"Post {post.id}: parent {post.parent} not shown, attaching to thread {thread_id}")
                forest.threads[thread_id].nodes.append(nodes[post.id])

        log.debug(f"Built {len(forest)} threads from {len(batch)} posts")
        return forest

    def _root_for(self, post: Post, cyclic: bool) -> Post:
        if cyclic:
            return post
        try:
            return self.first_post_in_thread(post)
        except STCyclicThreadError:
            return post
