"""
Survey Tool forum CLI — read and reply to locale forums from a terminal.

Install:
    pip install -e .

Usage:
    stforum show fr_CA
    stforum show fr_CA --filter open
    stforum show fr_CA --file saved_posts.json --json
    stforum summary fr_CA
    stforum root fr_CA 32036
    stforum reply fr_CA 32036 --status Question --text "Which plural form?"

Connection settings come from st_config (ST_BASE_URL, ST_SESSION_ID, ...).
"""

import json
import logging
import sys

import click

from STExceptions import STError
from STFilter import FilterMode, ForumFilter
from STRender import STRINGS, TextRenderer
from STSession import ContextMode, ForumSession
from STThreads import PostNode
from STTypes import ForumUser

# ── Helpers ────────────────────────────────────────────────────────────────────

def read_rows(path: str) -> list[dict]:
    """A saved forum_fetch response: either the raw list or {"ret": [...]}."""
    with open(path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"{path} is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("ret", [])
    if not isinstance(data, list):
        raise click.BadParameter(f"{path} holds neither a post list nor {{'ret': [...]}}")
    return data


def fetch_rows(locale: str) -> list[dict]:
    from STClient import ForumClient
    return ForumClient().fetch_posts_sync(locale)


def load_view(locale: str, file_path: str | None, context: str, mode: str = "all"):
    user    = ForumUser.from_config()
    session = ForumSession(
        locale=locale,
        forum_filter=ForumFilter(user=user, mode=mode),
        renderer=TextRenderer(user=user, show_item_link=context == ContextMode.MAIN.value),
        user=user,
    )
    try:
        rows = read_rows(file_path) if file_path else fetch_rows(locale)
        view = session.render_posts(rows, context)
    except STError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    return session, view


def node_json(node: PostNode) -> dict:
    return {"id": node.post.id, "replies": [node_json(c) for c in node.children]}


# ── Root ───────────────────────────────────────────────────────────────────────

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log engine activity to stderr.")
def cli(verbose):
    """Survey Tool forum — threads, summaries and replies."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# ── Show ───────────────────────────────────────────────────────────────────────

@cli.command("show")
@click.argument("locale")
@click.option("--filter", "mode", type=click.Choice([m.value for m in FilterMode]),
              default=FilterMode.ALL.value, show_default=True)
@click.option("--context", type=click.Choice([c.value for c in ContextMode]),
              default=ContextMode.MAIN.value, show_default=True)
@click.option("--file", "file_path", type=click.Path(exists=True, dir_okay=False),
              help="Read posts from a saved forum_fetch response instead of the server.")
@click.option("--json", "as_json", is_flag=True, help="Output thread structure as JSON.")
def show(locale, mode, context, file_path, as_json):
    """Threads for LOCALE, most recent activity first."""
    session, view = load_view(locale, file_path, context, mode)
    if as_json:
        click.echo(json.dumps({
            "locale":       locale,
            "thread_count": view.thread_count,
            "threads": [
                {"thread_id": t.thread_id, "posts": [node_json(n) for n in t.nodes]}
                for t in view.threads
            ],
        }, indent=2))
        return
    if view.is_empty:
        click.echo(STRINGS["forum_noposts"])
        return
    if view.assembled.count_label:
        click.echo(view.assembled.count_label)
        click.echo()
    for block in view.assembled.rendered:
        click.echo(block)
        click.echo()


# ── Summary ────────────────────────────────────────────────────────────────────

@cli.command("summary")
@click.argument("locale")
@click.option("--file", "file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True)
def summary(locale, file_path, as_json):
    """Thread counts for LOCALE."""
    session, _ = load_view(locale, file_path, ContextMode.SUMMARY.value)
    if as_json:
        click.echo(json.dumps(session.summary_counts(), indent=2))
        return
    for line in session.summary_lines():
        click.echo(f"  {line}")


# ── Root ───────────────────────────────────────────────────────────────────────

@cli.command("root")
@click.argument("locale")
@click.argument("post_id", type=int)
@click.option("--file", "file_path", type=click.Path(exists=True, dir_okay=False))
def root(locale, post_id, file_path):
    """First post of the thread containing POST_ID."""
    session, _ = load_view(locale, file_path, ContextMode.INFO.value)
    post = session.get_post(post_id)
    if post is None:
        click.echo(f"Post {post_id} not found in {locale}.", err=True)
        sys.exit(1)
    first = session.thread_root_for(post)
    click.echo(f"  {'thread':<10} {session.thread_id_for(post)}")
    click.echo(f"  {'root':<10} {first.id}")
    click.echo(f"  {'locale':<10} {first.locale}")
    click.echo(f"  {'xpath':<10} {first.xpath or '-'}")
    click.echo(f"  {'status':<10} {first.forum_status}")


# ── Reply ──────────────────────────────────────────────────────────────────────

@cli.command("reply")
@click.argument("locale")
@click.argument("post_id", type=int)
@click.option("--status", required=True, help="Forum status, e.g. Question, Agreed, Closed.")
@click.option("--text", required=True, help="Body of the reply.")
def reply(locale, post_id, status, text):
    """Reply to POST_ID. Locale and item come from the thread's first post."""
    from STClient import ForumClient
    client  = ForumClient()
    session, _ = load_view(locale, None, ContextMode.INFO.value)
    post = session.get_post(post_id)
    if post is None:
        click.echo(f"Post {post_id} not found in {locale}.", err=True)
        sys.exit(1)
    draft = session.compose(reply_to=post)
    try:
        result = client.submit_post(draft, status, text)
    except STError as e:
        click.echo(f"Error: {e.message}", err=True)
        click.echo(f"Allowed statuses: {', '.join(draft.status_options)}", err=True)
        sys.exit(1)
    click.echo(f"Posted #{result.get('postId', '?')} in {draft.locale}: {draft.subject}")


if __name__ == "__main__":
    cli()
