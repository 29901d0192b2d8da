"""
Pytest fixtures for the forum engine tests.
"""
import pytest

from post_builder import post_row


class FakeFetcher:
    """Fetcher returning canned rows per locale; records every call."""

    def __init__(self, rows_by_locale=None, error=None):
        self.rows_by_locale = rows_by_locale or {}
        self.error = error
        self.calls = []

    async def fetch_posts(self, locale):
        self.calls.append(locale)
        if self.error is not None:
            raise self.error
        return list(self.rows_by_locale.get(locale, []))


@pytest.fixture
def forum_rows():
    """
    A small forum, newest first.

        en|1  general, Request by 2; reply 5 by 42
        en|3  general, Question by 1; reply 6 by 1 closes it
        en|4  item "abc", Request by 2
    """
    return [
        post_row(6, parent=3, status="Closed", poster=1, date=6000),
        post_row(5, parent=1, status="Question", poster=42, date=5000),
        post_row(4, xpath="abc", status="Request", poster=2, date=4000),
        post_row(3, status="Question", poster=1, date=3000),
        post_row(1, status="Request", poster=2, date=1000),
    ]


@pytest.fixture
def fake_fetcher():
    return FakeFetcher
