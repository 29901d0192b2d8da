"""
STTypes — wire shapes and domain records for Survey Tool forum posts.

The server sends each post as a JSON object (STPostJSON below). The engine
never works on those dicts directly: Post.from_json() validates one row and
returns a frozen Post, so a corrupt row fails at the store boundary instead
of deep inside thread reconstruction.

Usage:
    from STTypes import Post

    post = Post.from_json({"id": 11, "parent": 10, "locale": "fr_CA", ...})
    post.is_top_level   # False
    post.raw["id"]      # original wire dict, untouched

Dates:
    date_long is epoch MILLISECONDS (the browser fed it straight to
    new Date(x)). Post.date keeps milliseconds; STText.fmt_date_time()
    divides by 1000 when formatting.
"""

from dataclasses import dataclass, field
from typing import Any, TypedDict, NotRequired

import st_config
from STExceptions import STValidationError

NO_PARENT = -1


# ── Wire shapes ────────────────────────────────────────────────────────────────

class STPosterInfoJSON(TypedDict):
    """posterInfo object. Absent when the poster is no longer active."""
    id:            int
    name:          str
    org:           str
    userlevelName: str   # e.g. "vetter", "tc", "manager"
    email:         NotRequired[str]


class STPostJSON(TypedDict):
    """One row of the forum_fetch "ret" list."""
    id:          int
    locale:      str
    parent:      NotRequired[int]   # -1 or absent = top level
    xpath:       NotRequired[str]   # empty/absent = general post
    subject:     NotRequired[str]
    text:        NotRequired[str]
    date_long:   NotRequired[int]   # epoch milliseconds
    date:        NotRequired[str]   # older servers: preformatted or millis
    posterInfo:  NotRequired[STPosterInfoJSON]
    poster:      NotRequired[int]
    forumStatus: NotRequired[str]
    version:     NotRequired[str]


class STFetchResponseJSON(TypedDict):
    """SurveyAjax?what=forum_fetch response."""
    ret: list[STPostJSON]
    err: NotRequired[str]


# ── Domain records ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PosterInfo:
    id:              int
    name:            str = ""
    org:             str = ""
    userlevel_name:  str = ""
    email:           str | None = None

    @classmethod
    def from_json(cls, data: dict | None) -> "PosterInfo | None":
        if not data:
            return None
        try:
            uid = int(data.get("id", 0))
        except (TypeError, ValueError):
            uid = 0
        return cls(
            id=uid,
            name=str(data.get("name") or ""),
            org=str(data.get("org") or ""),
            userlevel_name=str(data.get("userlevelName") or ""),
            email=data.get("email") or None,
        )


@dataclass(frozen=True)
class Post:
    """A single forum post, validated."""

    id:           int
    locale:       str
    parent:       int = NO_PARENT
    xpath:        str = ""
    subject:      str | None = None
    text:         str | None = None
    date:         int = 0
    poster_info:  PosterInfo | None = None
    forum_status: str = ""
    version:      str | None = None
    raw:          dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_top_level(self) -> bool:
        return self.parent == NO_PARENT

    @property
    def is_item_post(self) -> bool:
        return bool(self.xpath)

    @property
    def poster_id(self) -> int | None:
        return self.poster_info.id if self.poster_info else None

    @classmethod
    def from_json(cls, data: Any) -> "Post":
        """
        Build a Post from one server row.

        Raises:
            STValidationError: data is not a dict, id is missing or not an
                integer, or locale is missing/empty.
        """
        if not isinstance(data, dict):
            raise STValidationError(f"Post must be an object, got {type(data).__name__}", field="post")

        if data.get("id") is None:
            raise STValidationError("Post has no id", field="id")
        post_id = _as_int(data["id"], "id")

        locale = data.get("locale")
        if not locale or not isinstance(locale, str):
            raise STValidationError(f"Post {post_id} has no locale", field="locale")

        parent = data.get("parent")
        parent = NO_PARENT if parent is None else _as_int(parent, "parent")
        if parent < 0:
            parent = NO_PARENT

        version = data.get("version")
        return cls(
            id=post_id,
            locale=locale,
            parent=parent,
            xpath=str(data.get("xpath") or ""),
            subject=data.get("subject"),
            text=data.get("text"),
            date=_date_millis(data),
            poster_info=PosterInfo.from_json(data.get("posterInfo")),
            forum_status=str(data.get("forumStatus") or ""),
            version=str(version) if version not in (None, "") else None,
            raw=data,
        )


@dataclass(frozen=True)
class ForumUser:
    """The user the posting policy and the "mine" filter act for."""
    id:    int
    name:  str = ""
    is_tc: bool = False   # Technical Committee member; may close any thread

    @classmethod
    def from_config(cls) -> "ForumUser | None":
        """The user configured in st_config, or None when ST_USER_ID is unset."""
        if not st_config.ST_USER_ID:
            return None
        return cls(id=st_config.ST_USER_ID, name=st_config.ST_USER_NAME, is_tc=st_config.ST_USER_IS_TC)


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise STValidationError(f"Post {name} must be an integer, got {value!r}", field=name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise STValidationError(f"Post {name} must be an integer, got {value!r}", field=name) from None


def _date_millis(data: dict) -> int:
    """date_long wins; a numeric "date" is accepted too. Anything else is 0."""
    for key in ("date_long", "date"):
        value = data.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return 0
