"""
STText — display helpers for Survey Tool forum post content.

Post subjects and bodies arrive with a small amount of HTML escaping
(<p> paragraph breaks and the &quot; &lt; &gt; &amp; entities). STText turns
them back into plain text, builds previews, reply subjects and the
"2018-05-16 13:45" timestamps shown next to each post.

Usage:
    from STText import STText

    STText.to_text("a &lt;b&gt;<p>c")          # 'a <b>\\nc'
    STText.to_text(None)                        # '(empty)'
    STText.preview(post.text, length=60)
    STText.reply_subject("Re: Plural forms")    # 'Re: Plural forms'
    STText.fmt_date_time(1526478300000)         # '2018-05-16 13:45' (local time)
"""

import re
from datetime import datetime

EMPTY_TEXT = "(empty)"

# Order matters: &amp; last so "&amp;lt;" becomes "&lt;", not "<"
_REPLACEMENTS = (
    ("<p>",    "\n"),
    ("&quot;", '"'),
    ("&lt;",   "<"),
    ("&gt;",   ">"),
    ("&amp;",  "&"),
)


class STText:
    """Plain-text conversion for forum posts. All methods are static."""

    @staticmethod
    def to_text(text: str | None) -> str:
        """
        Replace the server's HTML escapes with plain text.

        None becomes "(empty)" so a post with a missing subject still
        shows something.
        """
        if text is None:
            return EMPTY_TEXT
        out = text
        for old, new in _REPLACEMENTS:
            out = out.replace(old, new)
        return out

    @staticmethod
    def preview(text: str | None, length: int = 120) -> str:
        """Plain text, whitespace collapsed, truncated at a word boundary."""
        s = re.sub(r"\s+", " ", STText.to_text(text)).strip()
        if len(s) > length:
            return s[:length].rsplit(" ", 1)[0] + "..."
        return s

    @staticmethod
    def reply_subject(parent_subject: str | None) -> str:
        """Subject for a reply: the parent's, prefixed with "Re: " once."""
        subject = STText.to_text(parent_subject)
        if not subject.startswith("Re:"):
            subject = "Re: " + subject
        return subject

    @staticmethod
    def fmt_date_time(millis: int) -> str:
        """Format epoch milliseconds as local "YYYY-MM-DD HH:MM"."""
        return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M")

    @staticmethod
    def post_date(post) -> str:
        """Date label for a post, "[v38] 2020-11-02 09:15" when it has a version."""
        date = STText.fmt_date_time(post.date)
        if post.version:
            date = f"[v{post.version}] {date}"
        return date
