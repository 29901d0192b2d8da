"""
STSession — the forum engine as seen by its host (page, CLI, web server).

One ForumSession owns everything that used to be module-wide state: the
active locale, the post map and its update time. Collaborators are passed in,
and any of them may be None:

    fetcher   async fetch_posts(locale) -> list of wire dicts (STClient.ForumClient)
    filter    ThreadFilter (STFilter.ForumFilter by default)
    renderer  ThreadRenderer; without one, results carry threads only
    policy    PostingPolicy for compose()

Usage:
    session = ForumSession(fetcher=ForumClient(), user=me)
    result  = await session.load_and_render("fr_CA")
    for thread in result.threads:
        ...
    session.summary_counts()                     # {"Total": 12, "Open": 7, ...}
    session.rebuild_from_cache("summary")        # no network
    draft = session.compose(reply_to=post)       # locale/xpath from thread root

Contexts:
    main     the forum page: item links, reply buttons, filter, thread count
    summary  counts only: filter applied
    info     info panel: reply buttons
    new      the parent(s) of a post being composed; merged into the store
             rather than replacing it

Fetch races:
    Every load_and_render() call takes a new generation number. A response
    that comes back after a newer call was made is dropped: the call returns
    None and on_ready is not called.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, Sequence

from STAssembler import AssembledForum, ThreadAssembler, ThreadRenderer
from STExceptions import STCyclicThreadError, STError, STStaleFetchDiscarded, STValidationError
from STFilter import ForumFilter, ThreadFilter
from STPolicy import PostDraft, PostingPolicy, compose_post
from STPostStore import PostStore
from STThreads import Forest, ThreadResolver
from STTypes import ForumUser, Post

log = logging.getLogger("stforum.session")


class Fetcher(Protocol):
    async def fetch_posts(self, locale: str) -> list[dict]: ...


class ContextMode(str, Enum):
    MAIN    = "main"
    SUMMARY = "summary"
    INFO    = "info"
    NEW     = "new"


@dataclass(frozen=True)
class ContextOptions:
    show_item_link:    bool = False
    show_reply_button: bool = False
    full_set:          bool = True
    apply_filter:      bool = False
    show_thread_count: bool = False


_CONTEXT_OPTIONS = {
    ContextMode.MAIN:    ContextOptions(show_item_link=True, show_reply_button=True,
                                        apply_filter=True, show_thread_count=True),
    ContextMode.SUMMARY: ContextOptions(apply_filter=True),
    ContextMode.INFO:    ContextOptions(show_reply_button=True),
    ContextMode.NEW:     ContextOptions(full_set=False),
}


def options_for(context: ContextMode | str) -> ContextOptions:
    """
    Raises:
        STValidationError: unknown context name.
    """
    try:
        return _CONTEXT_OPTIONS[ContextMode(context)]
    except ValueError:
        raise STValidationError(f"Unrecognized forum context {context!r}", field="context") from None


@dataclass
class ForumView:
    """One reconstruction: the assembled threads plus what produced them."""
    context:   ContextMode
    options:   ContextOptions
    forest:    Forest
    assembled: AssembledForum

    @property
    def threads(self):
        return self.assembled.threads

    @property
    def thread_count(self) -> int:
        return self.assembled.thread_count

    @property
    def is_empty(self) -> bool:
        return not self.forest.thread_of


class ForumSession:
    """
    Forum state and operations for one active locale at a time.

    Args:
        locale:       Initial locale (optional; load_and_render sets it).
        fetcher:      Network collaborator.
        forum_filter: ThreadFilter; defaults to ForumFilter(user).
        renderer:     ThreadRenderer applied to every emitted thread.
        policy:       PostingPolicy; defaults to PostingPolicy().
        user:         The viewing user.
    """

    def __init__(
        self,
        locale: str | None = None,
        fetcher: Fetcher | None = None,
        forum_filter: ThreadFilter | None = None,
        renderer: ThreadRenderer | None = None,
        policy: PostingPolicy | None = None,
        user: ForumUser | None = None,
    ):
        self.store        = PostStore(locale)
        self.resolver     = ThreadResolver(self.store)
        self.assembler    = ThreadAssembler()
        self.fetcher      = fetcher
        self.forum_filter = forum_filter if forum_filter is not None else ForumFilter(user=user)
        self.renderer     = renderer
        self.policy       = policy if policy is not None else PostingPolicy()
        self.user         = user
        self._generation  = 0
        self.last_view: ForumView | None = None

    @property
    def locale(self) -> str | None:
        return self.store.locale

    @property
    def generation(self) -> int:
        return self._generation

    def set_locale(self, locale: str) -> bool:
        """Switch the active locale; True if it changed (and the store was cleared)."""
        changed = self.store.switch_locale(locale)
        if changed:
            self.last_view = None
        return changed

    # ── Fetch + render ─────────────────────────────────────────────────────────

    async def load_and_render(
        self,
        locale: str,
        on_ready: Callable[[ForumView], None] | None = None,
        context: ContextMode | str = ContextMode.MAIN,
    ) -> ForumView | None:
        """
        Fetch every post for locale, rebuild threads and assemble them.

        Returns None (and skips on_ready) when a newer load superseded this
        one while it was in flight.

        Raises:
            STError: no fetcher configured, or the fetcher's transport/server
                     error for the current generation.
            STValidationError: the server sent a malformed post.
        """
        if self.fetcher is None:
            raise STError("ForumSession has no fetcher; use render_posts() with posts you already have")
        options_for(context)
        self.set_locale(locale)
        self._generation += 1
        generation = self._generation

        try:
            rows = await self.fetcher.fetch_posts(locale)
        except STError:
            if self._is_stale(generation):
                return None
            raise

        if self._is_stale(generation):
            return None

        view = self.render_posts(rows, context)
        if on_ready is not None:
            on_ready(view)
        return view

    def _is_stale(self, generation: int) -> bool:
        if generation == self._generation:
            return False
        e = STStaleFetchDiscarded(generation=generation, latest=self._generation)
        log.debug(f"{e.message}: response #{e.generation}, current #{e.latest}")
        return True

    def render_posts(self, rows: Sequence[dict], context: ContextMode | str = ContextMode.MAIN) -> ForumView:
        """
        Reconstruct from posts already in hand (wire dicts, newest first).

        Full-set contexts replace the store's contents; "new" merges.
        """
        options = options_for(context)
        posts = self.store.parse(rows)
        if options.full_set:
            self.store.reset()
        self.store.update(posts)
        return self._reconstruct(posts, ContextMode(context), options)

    def rebuild_from_cache(self, context: ContextMode | str = ContextMode.MAIN) -> ForumView:
        """Rerun reconstruction on every loaded post (store.feed), no network."""
        options = options_for(context)
        return self._reconstruct(self.store.feed, ContextMode(context), options)

    def preview(self, draft: PostDraft) -> ForumView:
        """The thread view shown under a reply being composed (its parent)."""
        posts = [draft.parent] if draft.parent is not None else []
        return self._reconstruct(posts, ContextMode.NEW, options_for(ContextMode.NEW), remember=False)

    def _reconstruct(
        self,
        posts: Sequence[Post],
        context: ContextMode,
        options: ContextOptions,
        remember: bool = True,
    ) -> ForumView:
        forest = self.resolver.build_forest(posts)
        if options.full_set:
            selected = self.forum_filter.get_filtered_thread_ids(posts, options.apply_filter, forest.thread_of)
        else:
            # partial batches must not overwrite the filter's summary counts
            selected = set(forest.threads)
        assembled = self.assembler.assemble(
            posts, forest, selected,
            show_count=options.show_thread_count,
            renderer=self.renderer,
        )
        view = ForumView(context, options, forest, assembled)
        if remember:
            self.last_view = view
        log.debug(f"Forum {self.locale} [{context.value}]: {assembled.thread_count} threads, {len(posts)} posts")
        return view

    # ── Threads, summary, compose ──────────────────────────────────────────────

    def thread_id_for(self, post: Post) -> str:
        return self.resolver.thread_id_or_singleton(post)[0]

    def thread_root_for(self, post: Post) -> Post:
        """First post of post's thread; post itself if the chain is corrupt."""
        try:
            return self.resolver.first_post_in_thread(post)
        except STCyclicThreadError as e:
            log.warning(f"Corrupt thread data: {e.message}; treating post {post.id} as its own root")
            return post

    def get_post(self, post_id: int) -> Post | None:
        return self.store.get(post_id)

    def summary_counts(self) -> dict[str, int]:
        return self.forum_filter.get_filtered_thread_counts()

    def summary_lines(self) -> list[str]:
        """Text of the forum summary box."""
        if self.store.updated_at is None:
            return ["Forum summary not loaded"]
        return [f"{label}: {count}" for label, count in self.summary_counts().items()]

    async def load_summary(self, locale: str) -> list[str]:
        """Fetch in summary context if this locale is not loaded yet, then summarise."""
        if self.store.locale != locale or self.store.updated_at is None:
            await self.load_and_render(locale, context=ContextMode.SUMMARY)
        return self.summary_lines()

    def compose(
        self,
        reply_to: Post | None = None,
        locale: str | None = None,
        xpath: str = "",
        subject: str = "",
    ) -> PostDraft:
        return compose_post(
            self.resolver, self.policy, self.user,
            reply_to=reply_to,
            locale=locale if locale is not None else (self.locale or ""),
            xpath=xpath,
            subject=subject,
        )
