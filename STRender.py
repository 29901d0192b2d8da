"""
STRender — plain-text rendering of assembled forum threads (used by the CLI).

The engine hands over ThreadForest objects; a renderer turns each one into
whatever the host displays. TextRenderer produces an indented block of lines
per thread:

    == fr_CA | Item: //ldml/numbers/... ==
    Jane Doe (Acme) [vetter]                     2020-11-02 09:15
      Subject: Plural forms
      The "one" form looks wrong.
      【Request】
        Me [tc]                                  2020-11-03 10:00
          Subject: Re: Plural forms
          ...

server.HTMLRenderer does the same job for the web preview.
"""

from __future__ import annotations

from STText import STText
from STThreads import PostNode, ThreadForest
from STTypes import ForumUser, Post

# Fallback UI strings; a host with a localisation table passes its own
STRINGS = {
    "user_me":         "Me",
    "poster_inactive": "[Poster no longer active]",
    "forum_item":      "Item",
    "forum_noposts":   "No posts.",
    "forum_reply":     "Reply",
    "userlevel_tc":      "TC",
    "userlevel_vetter":  "Vetter",
    "userlevel_manager": "Manager",
    "userlevel_admin":   "Admin",
    "userlevel_street":  "Guest",
}


def forum_str(key: str, strings: dict | None = None) -> str:
    """Look up a UI string; unknown keys come back as the key itself."""
    return (strings or STRINGS).get(key, key)


def poster_label(post: Post, user: ForumUser | None = None, strings: dict | None = None) -> str:
    info = post.poster_info
    if info is None:
        return forum_str("poster_inactive", strings)
    if user is not None and info.id == user.id:
        who = forum_str("user_me", strings)
    else:
        who = f"{info.name} ({info.org})" if info.org else info.name
    if info.userlevel_name:
        who += f" [{forum_str('userlevel_' + info.userlevel_name, strings)}]"
    return who


def thread_heading(thread: ThreadForest, show_item_link: bool = True, strings: dict | None = None) -> str:
    root = thread.root
    parts = []
    if show_item_link:
        parts.append(root.locale)
    if not root.xpath:
        parts.append(STText.to_text(root.subject))
    elif show_item_link:
        parts.append(f"{forum_str('forum_item', strings)}: #/{root.locale}//{root.xpath}")
    return " | ".join(parts)


class TextRenderer:
    """
    Args:
        user:           Viewing user (their own posts show as "Me").
        show_item_link: Include locale and item path in thread headings.
        width:          Column at which dates are right-aligned.
        strings:        UI string table (defaults to STRINGS).
    """

    def __init__(
        self,
        user: ForumUser | None = None,
        show_item_link: bool = True,
        width: int = 78,
        strings: dict | None = None,
    ):
        self.user           = user
        self.show_item_link = show_item_link
        self.width          = width
        self.strings        = strings

    def render_thread(self, thread: ThreadForest) -> str:
        lines = [f"== {thread_heading(thread, self.show_item_link, self.strings)} =="]
        for node in thread.nodes:
            self._render_node(node, 0, lines)
        return "\n".join(lines)

    def _render_node(self, node: PostNode, depth: int, lines: list[str]) -> None:
        post = node.post
        pad = "  " * depth
        head = pad + poster_label(post, self.user, self.strings)
        date = STText.post_date(post)
        gap = max(1, self.width - len(head) - len(date))
        lines.append(f"{head}{' ' * gap}{date}")
        lines.append(f"{pad}  Subject: {STText.to_text(post.subject)}")
        for text_line in STText.to_text(post.text).splitlines() or [""]:
            lines.append(f"{pad}  {text_line}")
        lines.append(f"{pad}  【{post.forum_status}】")
        for child in node.children:
            self._render_node(child, depth + 1, lines)
