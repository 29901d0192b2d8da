"""
Builders for forum post rows as the server sends them.
"""
from STPostStore import PostStore
from STThreads import ThreadResolver


def post_row(
    id,
    parent=-1,
    locale="en",
    xpath="",
    subject=None,
    text=None,
    status="Question",
    poster=None,
    date=0,
    version=None,
):
    row = {
        "id": id,
        "parent": parent,
        "locale": locale,
        "xpath": xpath,
        "subject": subject if subject is not None else f"Post {id}",
        "text": text if text is not None else f"Text of post {id}",
        "forumStatus": status,
        "date_long": date,
    }
    if poster is not None:
        row["posterInfo"] = {
            "id": poster,
            "name": f"User {poster}",
            "org": "Org",
            "userlevelName": "vetter",
        }
    if version is not None:
        row["version"] = version
    return row


def loaded(rows, locale="en"):
    """A store holding rows, its resolver, and the parsed batch."""
    store = PostStore(locale)
    posts = store.parse(rows)
    store.update(posts)
    return store, ThreadResolver(store), posts
