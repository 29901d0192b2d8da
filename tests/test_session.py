"""
ForumSession: load, rebuild, locale switching, stale fetches, summary.
"""
import asyncio

import pytest

from post_builder import post_row
from STExceptions import STError, STServerError, STTransportError, STValidationError
from STFilter import ForumFilter
from STSession import ContextMode, ForumSession, options_for
from STTypes import ForumUser


class GatedFetcher:
    """Each call blocks until the test opens its gate."""

    def __init__(self, batches, errors=None):
        self.batches = batches
        self.errors = errors or {}
        self.gates = []

    async def fetch_posts(self, locale):
        index = len(self.gates)
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        if index in self.errors:
            raise self.errors[index]
        return self.batches[index]


class TestContextOptions:

    def test_main(self):
        opts = options_for("main")
        assert opts.show_item_link and opts.show_reply_button
        assert opts.apply_filter and opts.show_thread_count and opts.full_set

    def test_new_is_not_a_full_set(self):
        assert options_for(ContextMode.NEW).full_set is False

    def test_unknown_context(self):
        with pytest.raises(STValidationError):
            options_for("sidebar")


class TestLoadAndRender:

    def test_loads_and_calls_on_ready(self, forum_rows, fake_fetcher):
        fetcher = fake_fetcher({"en": forum_rows})
        session = ForumSession(fetcher=fetcher)
        ready = []
        view = asyncio.run(session.load_and_render("en", on_ready=ready.append))
        assert ready == [view]
        assert fetcher.calls == ["en"]
        assert session.locale == "en"
        assert view.thread_count == 3
        assert view.assembled.count_label == "3 threads"
        assert [t.thread_id for t in view.threads] == ["en|3", "en|1", "en|4"]
        assert session.last_view is view

    def test_filter_applies_in_main_context(self, forum_rows, fake_fetcher):
        session = ForumSession(
            fetcher=fake_fetcher({"en": forum_rows}),
            forum_filter=ForumFilter(mode="closed"),
        )
        view = asyncio.run(session.load_and_render("en"))
        assert [t.thread_id for t in view.threads] == ["en|3"]

    def test_info_context_ignores_filter(self, forum_rows, fake_fetcher):
        session = ForumSession(
            fetcher=fake_fetcher({"en": forum_rows}),
            forum_filter=ForumFilter(mode="closed"),
        )
        view = asyncio.run(session.load_and_render("en", context="info"))
        assert view.thread_count == 3
        assert view.assembled.count_label is None

    def test_no_posts(self, fake_fetcher):
        session = ForumSession(fetcher=fake_fetcher({}))
        view = asyncio.run(session.load_and_render("de"))
        assert view.is_empty
        assert view.thread_count == 0

    def test_without_fetcher(self):
        with pytest.raises(STError):
            asyncio.run(ForumSession().load_and_render("en"))

    def test_transport_error_reaches_host(self, fake_fetcher):
        session = ForumSession(fetcher=fake_fetcher(error=STServerError("no such locale")))
        with pytest.raises(STServerError):
            asyncio.run(session.load_and_render("xx"))

    def test_malformed_post_fails_fast_and_keeps_store(self, forum_rows):
        session = ForumSession(locale="en")
        session.render_posts(forum_rows)
        with pytest.raises(STValidationError):
            session.render_posts([post_row(20), {"id": 21}])
        assert session.get_post(1) is not None
        assert session.get_post(20) is None

    def test_renderer_output_is_kept(self, forum_rows, fake_fetcher):
        class Names:
            def render_thread(self, thread):
                return thread.thread_id

        session = ForumSession(fetcher=fake_fetcher({"en": forum_rows}), renderer=Names())
        view = asyncio.run(session.load_and_render("en"))
        assert view.assembled.rendered == ["en|3", "en|1", "en|4"]


class TestStaleFetch:

    def test_older_response_is_discarded(self):
        fetcher = GatedFetcher([[post_row(1)], [post_row(2), post_row(3)]])
        session = ForumSession(fetcher=fetcher)
        ready = []

        async def scenario():
            first = asyncio.create_task(session.load_and_render("en", on_ready=ready.append))
            await asyncio.sleep(0)
            second = asyncio.create_task(session.load_and_render("en", on_ready=ready.append))
            await asyncio.sleep(0)
            fetcher.gates[1].set()
            newer = await second
            fetcher.gates[0].set()
            older = await first
            return older, newer

        older, newer = asyncio.run(scenario())
        assert older is None
        assert ready == [newer]
        assert session.last_view is newer
        assert session.get_post(1) is None
        assert session.get_post(2) is not None

    def test_stale_error_is_discarded_too(self):
        fetcher = GatedFetcher([None, [post_row(2)]], errors={0: STTransportError("late failure")})
        session = ForumSession(fetcher=fetcher)

        async def scenario():
            first = asyncio.create_task(session.load_and_render("en"))
            await asyncio.sleep(0)
            second = asyncio.create_task(session.load_and_render("de"))
            await asyncio.sleep(0)
            fetcher.gates[1].set()
            await second
            fetcher.gates[0].set()
            return await first

        assert asyncio.run(scenario()) is None
        assert session.locale == "de"
        assert session.generation == 2


class TestLocaleSwitch:

    def test_switch_clears_cross_locale_links(self):
        session = ForumSession(locale="fr")
        session.render_posts([post_row(11, parent=10, locale="fr_CA"), post_row(10, locale="fr")])
        child = session.get_post(11)
        assert session.thread_id_for(child) == "fr|10"

        assert session.set_locale("de") is True
        assert session.get_post(10) is None
        assert session.last_view is None
        assert session.thread_id_for(child) == "fr_CA|11"

    def test_same_locale_keeps_posts(self):
        session = ForumSession(locale="fr")
        session.render_posts([post_row(10, locale="fr")])
        assert session.set_locale("fr") is False
        assert session.get_post(10) is not None

    def test_load_for_other_locale_replaces_posts(self, fake_fetcher):
        fetcher = fake_fetcher({"fr": [post_row(10, locale="fr")], "de": [post_row(20, locale="de")]})
        session = ForumSession(fetcher=fetcher)
        asyncio.run(session.load_and_render("fr"))
        asyncio.run(session.load_and_render("de"))
        assert session.get_post(10) is None
        assert session.get_post(20) is not None


class TestCacheAndSummary:

    def test_rebuild_from_cache(self, forum_rows):
        session = ForumSession(locale="en", forum_filter=ForumFilter(mode="open"))
        main = session.render_posts(forum_rows, "main")
        assert [t.thread_id for t in main.threads] == ["en|1", "en|4"]
        info = session.rebuild_from_cache("info")
        assert [t.thread_id for t in info.threads] == ["en|3", "en|1", "en|4"]
        assert session.last_view is info

    def test_new_context_merges(self, forum_rows):
        session = ForumSession(locale="en")
        session.render_posts(forum_rows, "main")
        view = session.render_posts([post_row(7, parent=4)], "new")
        assert session.get_post(1) is not None
        assert [t.thread_id for t in view.threads] == ["en|4"]

    def test_rebuild_after_merge_shows_whole_forum(self, forum_rows):
        session = ForumSession(locale="en")
        session.render_posts(forum_rows, "main")
        session.render_posts([post_row(7, parent=4)], "new")
        view = session.rebuild_from_cache("main")
        assert [t.thread_id for t in view.threads] == ["en|4", "en|3", "en|1"]
        assert view.thread_count == 3
        assert [p.id for p in session.store.feed] == [7, 6, 5, 4, 3, 1]

    def test_new_merge_keeps_summary_counts(self, forum_rows):
        session = ForumSession(locale="en")
        session.render_posts(forum_rows, "summary")
        session.render_posts([post_row(7, parent=4)], "new")
        assert session.summary_counts()["Total"] == 3

    def test_main_context_replaces(self, forum_rows):
        session = ForumSession(locale="en")
        session.render_posts(forum_rows, "main")
        session.render_posts([post_row(7)], "main")
        assert session.get_post(1) is None

    def test_summary(self, forum_rows):
        session = ForumSession(locale="en", user=ForumUser(id=42))
        assert session.summary_lines() == ["Forum summary not loaded"]
        session.render_posts(forum_rows, "summary")
        assert session.summary_counts()["Total"] == 3
        assert session.summary_counts()["Mine"] == 1
        assert session.summary_lines()[0] == "Total: 3"

    def test_load_summary_fetches_once(self, forum_rows, fake_fetcher):
        fetcher = fake_fetcher({"en": forum_rows})
        session = ForumSession(fetcher=fetcher)
        lines = asyncio.run(session.load_summary("en"))
        asyncio.run(session.load_summary("en"))
        assert lines[0] == "Total: 3"
        assert fetcher.calls == ["en"]


class TestReplyPath:

    def test_thread_root_for(self):
        session = ForumSession(locale="fr_CA")
        session.render_posts([post_row(11, parent=10, locale="fr"), post_row(10, locale="fr_CA", xpath="x9")])
        root = session.thread_root_for(session.get_post(11))
        assert root.id == 10

    def test_thread_root_for_cycle_is_post_itself(self):
        session = ForumSession(locale="en")
        session.render_posts([post_row(8, parent=9), post_row(9, parent=8)])
        assert session.thread_root_for(session.get_post(8)).id == 8

    def test_compose_reply_and_preview(self):
        session = ForumSession(locale="fr_CA", user=ForumUser(id=42))
        main = session.render_posts([
            post_row(11, parent=10, locale="fr"),
            post_row(10, locale="fr_CA", xpath="x9", status="Request", poster=2),
        ])
        draft = session.compose(reply_to=session.get_post(11))
        assert (draft.locale, draft.xpath) == ("fr_CA", "x9")
        preview = session.preview(draft)
        assert [t.thread_id for t in preview.threads] == ["fr_CA|10"]
        assert [n.post.id for n in preview.threads[0].nodes] == [11]
        assert session.last_view is main

    def test_compose_new_post_defaults_to_session_locale(self):
        session = ForumSession(locale="de")
        draft = session.compose(subject="Hallo")
        assert draft.locale == "de"
        assert draft.subject == "Hallo"
