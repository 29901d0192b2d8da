"""
Survey Tool forum — Flask preview server.

Renders a locale's forum as HTML with the same engine the CLI uses, plus two
JSON endpoints for the summary box and the reply path.

    /forum/<locale>?filter=open          HTML thread view
    /forum/<locale>/summary              {"Total": 12, "Open": 7, ...}
    /forum/<locale>/root/<post_id>       first post of the thread (reply target)

Posts come from the Survey Tool via STClient.ForumClient unless
app.config["ST_FETCHER"] holds another fetcher (tests use that).

Run:
    python server.py
"""

import asyncio
import logging

from flask import Flask, abort, jsonify, redirect, render_template_string, request

import st_config
from STExceptions import STError, STValidationError
from STFilter import FilterMode, ForumFilter
from STRender import STRINGS, forum_str, poster_label, thread_heading
from STSession import ContextMode, ForumSession
from STText import STText
from STThreads import ThreadForest
from STTypes import ForumUser

log = logging.getLogger("stforum.server")

app = Flask(__name__)


# ── HTML rendering ─────────────────────────────────────────────────────────────

THREAD_TEMPLATE = """
{%- macro post_node(node) -%}
<div class="post" id="fp{{ node.post.id }}">
  <h4 class="selected">
    <span class="poster">{{ poster(node.post) }}</span>
    <span class="label label-primary pull-right forumLink">{{ date(node.post) }}</span>
  </h4>
  <div class="postHeaderInfoGroup"><b class="postSubject">{{ text(node.post.subject) }}</b></div>
  <div class="postContent" style="white-space: pre-wrap">{{ text(node.post.text) }}</div>
  <div>【{{ node.post.forum_status }}】</div>
  {%- if show_reply %}
  <a class="btn btn-default btn-sm" href="{{ root_url(node.post.id) }}">{{ reply_label }}</a>
  {%- endif %}
  {%- if node.children %}
  <div class="postReplies">
    {%- for child in node.children %}{{ post_node(child) }}{% endfor %}
  </div>
  {%- endif %}
</div>
{%- endmacro -%}
<div class="well well-sm postTopic" id="fthr_{{ thread.thread_id }}">
  <h4 class="postTopicInfo">{{ heading }}</h4>
  {%- for node in thread.nodes %}{{ post_node(node) }}{% endfor %}
</div>
"""


PAGE_TEMPLATE = """
<!DOCTYPE html><html><head><title>Forum: {{ locale }}</title></head><body>
<h2>Forum: {{ locale }}</h2>
<form method="get">
  Filter:
  <select name="filter" onchange="this.form.submit()">
  {%- for m in modes %}
    <option value="{{ m }}" {% if m == mode %}selected{% endif %}>{{ m }}</option>
  {%- endfor %}
  </select>
</form>
<div id="forumSummary"><ul>
{%- for label, count in counts.items() %}<li>{{ label }}: {{ count }}</li>{% endfor %}
</ul></div>
<hr>
{%- if empty %}
<p class="helpContent">{{ noposts }}</p>
{%- else %}
<h4>{{ count_label }}</h4>
{%- for block in threads %}{{ block | safe }}{% endfor %}
{%- endif %}
</body></html>
"""


class HTMLRenderer:
    """
    ThreadRenderer producing one HTML block per thread. Must be used inside a
    Flask app context (render_template_string).
    """

    def __init__(self, locale: str, user: ForumUser | None = None, show_item_link: bool = True,
                 show_reply: bool = True):
        self.locale         = locale
        self.user           = user
        self.show_item_link = show_item_link
        self.show_reply     = show_reply

    def render_thread(self, thread: ThreadForest) -> str:
        return render_template_string(
            THREAD_TEMPLATE,
            thread=thread,
            heading=thread_heading(thread, self.show_item_link),
            poster=lambda post: poster_label(post, self.user),
            date=STText.post_date,
            text=STText.to_text,
            show_reply=self.show_reply,
            reply_label=forum_str("forum_reply"),
            root_url=lambda pid: f"/forum/{self.locale}/root/{pid}",
        )


# ── Helpers ────────────────────────────────────────────────────────────────────

def get_fetcher():
    fetcher = app.config.get("ST_FETCHER")
    if fetcher is None:
        from STClient import ForumClient
        fetcher = ForumClient()
    return fetcher


def load_session(locale: str, context: ContextMode, mode: str = FilterMode.ALL.value, renderer=None):
    user    = ForumUser.from_config()
    session = ForumSession(
        fetcher=get_fetcher(),
        forum_filter=ForumFilter(user=user, mode=mode),
        renderer=renderer,
        user=user,
    )
    view = asyncio.run(session.load_and_render(locale, context=context))
    return session, view


@app.errorhandler(STError)
def st_error(e: STError):
    log.warning(f"Forum request failed: {e!r}")
    status = 400 if isinstance(e, STValidationError) else 502
    return jsonify({"err": e.message}), status


# ── Routes ─────────────────────────────────────────────────────────────────────

@app.route("/")
def index():
    return redirect(f"/forum/{st_config.ST_DEFAULT_LOCALE}")


@app.route("/forum/<locale>")
def forum(locale):
    mode = request.args.get("filter", FilterMode.ALL.value)
    if mode not in [m.value for m in FilterMode]:
        abort(400)
    renderer = HTMLRenderer(locale, user=ForumUser.from_config())
    session, view = load_session(locale, ContextMode.MAIN, mode, renderer)
    return render_template_string(
        PAGE_TEMPLATE,
        locale=locale,
        modes=[m.value for m in FilterMode],
        mode=mode,
        counts=session.summary_counts(),
        empty=view.is_empty,
        noposts=STRINGS["forum_noposts"],
        count_label=view.assembled.count_label,
        threads=view.assembled.rendered,
    )


@app.route("/forum/<locale>/summary")
def summary(locale):
    session, _ = load_session(locale, ContextMode.SUMMARY)
    return jsonify(session.summary_counts())


@app.route("/forum/<locale>/root/<int:post_id>")
def thread_root(locale, post_id):
    session, _ = load_session(locale, ContextMode.INFO)
    post = session.get_post(post_id)
    if post is None:
        return jsonify({"err": f"Post {post_id} not found"}), 404
    draft = session.compose(reply_to=post)
    first = session.thread_root_for(post)
    return jsonify({
        "thread_id":      session.thread_id_for(post),
        "root":           first.raw,
        "reply_locale":   draft.locale,
        "reply_xpath":    draft.xpath,
        "reply_subject":  draft.subject,
        "status_options": draft.status_options,
    })


if __name__ == "__main__":
    app.run(host="127.0.0.1", port=st_config.ST_SERVER_PORT, debug=True)
