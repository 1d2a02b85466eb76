import pytest

from graphbatch.core import Batcher
from graphbatch.paging import PagedDeferred
from tests.mocks.graph import FakeGraphAPI, make_graph_executor
from tests.mocks.models import Friend

FIRST_PAGE = {
    "data": [{"id": "1", "name": "Ann"}, {"id": "2", "name": "Ben"}],
    "paging": {
        "next": "https://graph.facebook.com/me/friends?access_token=abc&limit=2&after=MgZDZD",
    },
}
SECOND_PAGE = {
    "data": [{"id": "3", "name": "Cid"}],
    "paging": {
        "previous": "https://graph.facebook.com/me/friends?limit=2&before=MwZDZD",
    },
}


@pytest.fixture
def paged_api(graph_api: FakeGraphAPI) -> FakeGraphAPI:
    """
    Serve two pages of ``me/friends``.

    Returns
    -------
    FakeGraphAPI
        Fake with linked pages.
    """
    graph_api.objects["me/friends"] = FIRST_PAGE
    graph_api.objects["me/friends?limit=2&after=MgZDZD"] = SECOND_PAGE
    graph_api.objects["me/friends?limit=2&before=MwZDZD"] = FIRST_PAGE
    return graph_api


def test_paged_returns_items(batcher: Batcher, paged_api: FakeGraphAPI):
    friends = batcher.paged("/me/friends", Friend)
    assert friends.get() == [Friend(id="1", name="Ann"), Friend(id="2", name="Ben")]


def test_next_follows_link_without_access_token(batcher: Batcher, paged_api: FakeGraphAPI):
    first = batcher.paged("me/friends", Friend)
    second = first.next()

    assert isinstance(second, PagedDeferred)
    assert second.get() == [Friend(id="3", name="Cid")]
    assert paged_api.call_count == 2
    assert paged_api.batch() == [
        {"method": "GET", "relative_url": "me/friends?limit=2&after=MgZDZD"}
    ]


def test_next_on_last_page_is_none(batcher: Batcher, paged_api: FakeGraphAPI):
    last = batcher.paged("me/friends", Friend).next()
    assert last.next() is None


def test_previous(batcher: Batcher, paged_api: FakeGraphAPI):
    first = batcher.paged("me/friends", Friend)
    assert first.previous() is None
    back = first.next().previous()
    assert [friend.name for friend in back.get()] == ["Ann", "Ben"]


def test_untyped_pages_hold_raw_items(batcher: Batcher, paged_api: FakeGraphAPI):
    assert batcher.paged("me/friends").get() == FIRST_PAGE["data"]


def test_paged_requires_a_connection(batcher: Batcher):
    with pytest.raises(ValueError):
        batcher.paged("/me", Friend)


def test_versioned_links_drop_the_version_prefix(paged_api: FakeGraphAPI):
    paged_api.objects["me/friends"] = {
        "data": [],
        "paging": {"next": "https://graph.facebook.com/v2.0/me/friends?limit=2&after=MgZDZD"},
    }
    batcher = Batcher(
        access_token="test-token", api_version="v2.0", executor=make_graph_executor(paged_api)
    )
    second = batcher.paged("me/friends", Friend).next()
    assert second.get() == [Friend(id="3", name="Cid")]
