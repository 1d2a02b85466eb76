import datetime
import decimal

import pytest
from pydantic import BaseModel

from graphbatch.deferred import Now
from graphbatch.mapper import Mapper
from graphbatch.request import (
    ElementBinding,
    GraphRequest,
    HttpMethod,
    MultiqueryRequest,
    Param,
    QueryRequest,
    build_relative_url,
    stringify_value,
)


class Point(BaseModel):
    x: int
    y: int


@pytest.fixture
def mapper() -> Mapper:
    return Mapper()


def make_request(object: str, *params: Param, method: HttpMethod = HttpMethod.GET) -> GraphRequest:
    return GraphRequest(
        object,
        method,
        params,
        mapper=Mapper(),
        source=Now(value=None),
        binding=ElementBinding(),
    )


@pytest.mark.parametrize(
    "value, expected",
    [
        ("plain", "plain"),
        (42, "42"),
        (1.5, "1.5"),
        (decimal.Decimal("2.50"), "2.50"),
        (True, "true"),
        (None, "null"),
        (["a", "b"], '["a","b"]'),
        ({"k": 1}, '{"k":1}'),
        (datetime.datetime(2012, 1, 1, tzinfo=datetime.timezone.utc), "1325376000"),
        (datetime.date(2012, 1, 1), "1325376000"),
    ],
)
def test_stringify_value(value, expected, mapper):
    assert stringify_value(value, mapper) == expected


def test_stringify_model(mapper):
    assert stringify_value(Point(x=1, y=2), mapper) == '{"x":1,"y":2}'


def test_relative_url_without_params(mapper):
    assert build_relative_url(object="me", params=(), mapper=mapper) == "me"


def test_relative_url_encodes_values_and_keeps_commas(mapper):
    url = build_relative_url(
        object="me",
        params=(Param(name="fields", value="id,name"), Param(name="q", value="a b&c")),
        mapper=mapper,
    )
    assert url == "me?fields=id,name&q=a+b%26c"


def test_leading_slash_is_stripped():
    request = make_request("/me/friends")
    assert request.object == "me/friends"
    assert request.is_connection


def test_to_wire_omits_unset_members():
    request = make_request("me", Param(name="fields", value="name"))
    assert request.to_wire() == {"method": "GET", "relative_url": "me?fields=name"}


def test_to_wire_includes_name_and_omit_flag():
    request = make_request("me").with_name("myself")
    request.omit_response_on_success = False
    assert request.to_wire() == {
        "method": "GET",
        "relative_url": "me",
        "name": "myself",
        "omit_response_on_success": False,
    }


def test_rename_hook_sees_old_and_new_name():
    seen = []
    request = make_request("me")
    request._rename_hook = lambda req, old, new: seen.append((req, old, new))
    request.name = "first"
    request.name = "second"
    assert seen == [(request, None, "first"), (request, "first", "second")]
    assert request.name == "second"


def test_multiquery_params_follow_registered_queries():
    mapper = Mapper()
    multiquery = MultiqueryRequest(mapper=mapper, source=Now(value=None), binding=ElementBinding())
    multiquery.add_query(QueryRequest("SELECT uid FROM user WHERE uid=1", "a", Now(value=None)))
    multiquery.add_query(QueryRequest("SELECT uid FROM user WHERE uid=2", "b", Now(value=None)))
    assert multiquery.object == "method/fql.multiquery"
    assert multiquery.params == (
        Param(
            name="queries",
            value='{"a":"SELECT uid FROM user WHERE uid=1","b":"SELECT uid FROM user WHERE uid=2"}',
        ),
    )
