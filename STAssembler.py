"""
STAssembler — pick and order the threads to show.

Threads are ordered by their most recent activity: walking the feed (newest
post first), a thread is emitted the first time any of its posts appears.
That is neither alphabetical nor by thread creation date; a three-year-old
thread with a reply from this morning goes to the top.

Usage:
    result = ThreadAssembler().assemble(posts, forest, {"en|5"}, show_count=True)
    result.threads        # [ThreadForest("en|5")]
    result.thread_count   # 1
    result.count_label    # "1 thread"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence

from STThreads import Forest, ThreadForest
from STTypes import Post

log = logging.getLogger("stforum.assembler")


class ThreadRenderer(Protocol):
    """Turns one thread (root plus nested posts) into a display node."""

    def render_thread(self, thread: ThreadForest) -> Any: ...


@dataclass
class AssembledForum:
    threads:      list[ThreadForest] = field(default_factory=list)
    thread_count: int = 0
    count_label:  str | None = None
    rendered:     list[Any] = field(default_factory=list)

    @property
    def thread_ids(self) -> list[str]:
        return [t.thread_id for t in self.threads]


def count_label(n: int) -> str:
    return f"{n} thread" if n == 1 else f"{n} threads"


class ThreadAssembler:
    """Newest-activity-first thread selection. Stateless."""

    def assemble(
        self,
        posts: Sequence[Post],
        forest: Forest,
        filtered_thread_ids: Iterable[str],
        show_count: bool = False,
        renderer: ThreadRenderer | None = None,
    ) -> AssembledForum:
        """
        Args:
            posts:               The batch, in feed order.
            forest:              build_forest() output for the same batch.
            filtered_thread_ids: Threads the filter let through. Ids with no
                                 post in this batch are simply never emitted.
            show_count:          Fill in count_label.
            renderer:            Optional; rendered[i] is the display node of
                                 threads[i].
        """
        remaining = set(filtered_thread_ids)
        result = AssembledForum()
        for post in posts:
            thread_id = forest.thread_of.get(post.id)
            if thread_id is None or thread_id not in remaining:
                continue
            # once emitted, later (older) posts of the same thread are skipped
            remaining.discard(thread_id)
            thread = forest.threads[thread_id]
            result.threads.append(thread)
            if renderer is not None:
                result.rendered.append(renderer.render_thread(thread))

        result.thread_count = len(result.threads)
        if show_count:
            result.count_label = count_label(result.thread_count)
        log.debug(f"Assembled {result.thread_count} threads from {len(posts)} posts")
        return result
