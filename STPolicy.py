"""
STPolicy — who may post what, and how new posts and replies are set up.

Status menu (compare SurveyForum.ForumStatus on the server):

    new post   Request, Question
    reply      Question, Information
               + Agreed, Disputed  if the thread asks for a change (Request)
                                   and you did not start it
               + Closed            if you started the thread, or you are TC

Replies always take locale and xpath from the FIRST post of the thread, never
from the post being answered: a reply to an "fr" post inside an "fr_CA"
thread must be filed under fr_CA, or the server will treat it as a new
thread.

Usage:
    draft = compose_post(resolver, PostingPolicy(), user, reply_to=post)
    draft.subject          # "Re: Plural forms"
    draft.status_options   # ["Question", "Information", "Agreed", "Disputed"]
    draft.validate("Agreed", "Fine by me")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from STExceptions import STCyclicThreadError, STValidationError
from STText import STText
from STThreads import ThreadResolver
from STTypes import ForumUser, Post, NO_PARENT

log = logging.getLogger("stforum.policy")

STATUS_LABELS = {
    "Request":     "Request a change",
    "Question":    "Ask a question",
    "Information": "Information",
    "Agreed":      "Agree",
    "Disputed":    "Disagree",
    "Closed":      "Close",
}


def user_is_poster(user: ForumUser | None, post: Post | None) -> bool:
    return bool(user and post and post.poster_id is not None and post.poster_id == user.id)


class PostingPolicy:
    """Default posting rules. Subclass to change them."""

    def allowed_status_options(self, is_reply: bool, first_post: Post | None, user: ForumUser | None) -> list[str]:
        options = []
        if not is_reply:
            options.append("Request")
        options.append("Question")
        if is_reply:
            options.append("Information")
        if (
            is_reply
            and first_post is not None
            and not user_is_poster(user, first_post)
            and first_post.forum_status == "Request"
        ):
            options += ["Agreed", "Disputed"]
        if self.can_close(is_reply, first_post, user):
            options.append("Closed")
        return options

    def can_close(self, is_reply: bool, first_post: Post | None, user: ForumUser | None) -> bool:
        return is_reply and (user_is_poster(user, first_post) or bool(user and user.is_tc))


@dataclass
class PostDraft:
    """A post or reply ready for the compose form / submit_post()."""
    locale:         str
    xpath:          str
    reply_to:       int
    subject:        str
    status_options: list[str] = field(default_factory=list)
    parent:         Post | None = None

    @property
    def is_reply(self) -> bool:
        return self.reply_to != NO_PARENT

    def validate(self, status: str, text: str) -> None:
        """
        Raises:
            STValidationError: empty text, or a status not in status_options.
        """
        if not status or status not in self.status_options:
            raise STValidationError(
                f"Status {status!r} is not allowed here; choose one of {', '.join(self.status_options)}",
                field="forumStatus",
            )
        if not text or not text.strip():
            raise STValidationError("Post text is empty", field="text")


def compose_post(
    resolver: ThreadResolver,
    policy: PostingPolicy,
    user: ForumUser | None,
    reply_to: Post | None = None,
    locale: str = "",
    xpath: str = "",
    subject: str = "",
) -> PostDraft:
    """
    Set up a new post (reply_to=None) or a reply to reply_to.

    For replies the locale/xpath arguments are ignored; they come from the
    thread's first post.
    """
    if reply_to is None:
        return PostDraft(
            locale=locale,
            xpath=xpath,
            reply_to=NO_PARENT,
            subject=subject,
            status_options=policy.allowed_status_options(False, None, user),
        )

    try:
        first_post = resolver.first_post_in_thread(reply_to)
    except STCyclicThreadError as e:
        log.warning(f"Corrupt thread data while replying: {e.message}; using post {reply_to.id} as thread root")
        first_post = reply_to

    return PostDraft(
        locale=first_post.locale,
        xpath=first_post.xpath,
        reply_to=reply_to.id,
        subject=STText.reply_subject(reply_to.subject),
        status_options=policy.allowed_status_options(True, first_post, user),
        parent=reply_to,
    )
