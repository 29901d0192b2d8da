"""
Thread filtering and newest-activity-first assembly.
"""
import pytest

from post_builder import loaded, post_row
from STAssembler import ThreadAssembler, count_label
from STFilter import FilterMode, ForumFilter
from STTypes import ForumUser


def build(rows):
    _, resolver, posts = loaded(rows)
    return posts, resolver.build_forest(posts)


class RecordingRenderer:
    def __init__(self):
        self.seen = []

    def render_thread(self, thread):
        self.seen.append(thread.thread_id)
        return f"<{thread.thread_id}>"


class TestForumFilter:

    def test_no_filter_returns_every_thread(self, forum_rows):
        posts, forest = build(forum_rows)
        f = ForumFilter(mode="mine")
        assert f.get_filtered_thread_ids(posts, False, forest.thread_of) == {"en|1", "en|3", "en|4"}

    @pytest.mark.parametrize("mode, expected", [
        (FilterMode.ALL, {"en|1", "en|3", "en|4"}),
        (FilterMode.OPEN, {"en|1", "en|4"}),
        (FilterMode.CLOSED, {"en|3"}),
        (FilterMode.MINE, {"en|1"}),
        (FilterMode.ITEM, {"en|4"}),
        (FilterMode.GENERAL, {"en|1", "en|3"}),
        (FilterMode.NEEDING_ACTION, {"en|4"}),
    ])
    def test_modes(self, forum_rows, mode, expected):
        posts, forest = build(forum_rows)
        f = ForumFilter(user=ForumUser(id=42), mode=mode)
        assert f.get_filtered_thread_ids(posts, True, forest.thread_of) == expected

    def test_mine_without_user_matches_nothing(self, forum_rows):
        posts, forest = build(forum_rows)
        f = ForumFilter(mode=FilterMode.MINE)
        assert f.get_filtered_thread_ids(posts, True, forest.thread_of) == set()

    def test_counts(self, forum_rows):
        posts, forest = build(forum_rows)
        f = ForumFilter(user=ForumUser(id=42), mode="open")
        f.get_filtered_thread_ids(posts, True, forest.thread_of)
        assert f.get_filtered_thread_counts() == {
            "Total": 3, "Open": 2, "Closed": 1, "Mine": 1, "Item": 1, "General": 2,
        }

    def test_counts_empty_before_first_use(self):
        assert ForumFilter().get_filtered_thread_counts() == {}

    def test_set_mode_accepts_strings(self):
        f = ForumFilter()
        f.set_mode("needing-action")
        assert f.mode is FilterMode.NEEDING_ACTION
        with pytest.raises(ValueError):
            f.set_mode("bogus")

    def test_item_uses_root_post_not_reply(self):
        rows = [post_row(2, parent=1, xpath="reply-path"), post_row(1, xpath="")]
        posts, forest = build(rows)
        f = ForumFilter(mode=FilterMode.ITEM)
        assert f.get_filtered_thread_ids(posts, True, forest.thread_of) == set()


class TestThreadAssembler:

    def test_selected_thread_only(self):
        posts, forest = build([post_row(7), post_row(5)])
        result = ThreadAssembler().assemble(posts, forest, {"en|5"}, show_count=True)
        assert result.thread_ids == ["en|5"]
        assert result.thread_count == 1
        assert result.count_label == "1 thread"

    def test_order_follows_most_recent_post(self):
        # 9 is the newest post and replies to the oldest thread
        posts, forest = build([post_row(9, parent=5), post_row(7), post_row(5)])
        result = ThreadAssembler().assemble(posts, forest, {"en|5", "en|7"})
        assert result.thread_ids == ["en|5", "en|7"]

    def test_never_emits_a_thread_twice(self):
        rows = [post_row(4, parent=1), post_row(3, parent=1), post_row(2, parent=1), post_row(1)]
        posts, forest = build(rows)
        result = ThreadAssembler().assemble(posts, forest, ["en|1", "en|1"], show_count=True)
        assert result.thread_ids == ["en|1"]
        assert result.thread_count == 1

    def test_ids_without_posts_are_not_counted(self):
        posts, forest = build([post_row(5)])
        result = ThreadAssembler().assemble(posts, forest, {"en|5", "en|404"}, show_count=True)
        assert result.thread_count == 1
        assert result.count_label == "1 thread"

    def test_dedup_applies_without_filter(self, forum_rows):
        posts, forest = build(forum_rows)
        selected = ForumFilter().get_filtered_thread_ids(posts, False, forest.thread_of)
        result = ThreadAssembler().assemble(posts, forest, selected, show_count=True)
        assert result.thread_ids == ["en|3", "en|1", "en|4"]
        assert result.count_label == "3 threads"

    def test_no_count_label_unless_asked(self):
        posts, forest = build([post_row(5)])
        assert ThreadAssembler().assemble(posts, forest, {"en|5"}).count_label is None

    def test_renderer_called_once_per_emitted_thread(self):
        posts, forest = build([post_row(9, parent=5), post_row(7), post_row(5)])
        renderer = RecordingRenderer()
        result = ThreadAssembler().assemble(posts, forest, {"en|5", "en|7"}, renderer=renderer)
        assert renderer.seen == ["en|5", "en|7"]
        assert result.rendered == ["<en|5>", "<en|7>"]

    def test_empty(self):
        posts, forest = build([])
        result = ThreadAssembler().assemble(posts, forest, set(), show_count=True)
        assert result.threads == []
        assert result.count_label == "0 threads"

    @pytest.mark.parametrize("n, label", [(0, "0 threads"), (1, "1 thread"), (2, "2 threads")])
    def test_count_label(self, n, label):
        assert count_label(n) == label
