import pytest

from graphbatch.exceptions import (
    AccessTokenError,
    AuthError,
    PermissionDeniedError,
    ProtocolViolationError,
    QuerySyntaxError,
    RemoteError,
    ResourceMigratedError,
    error_for_code,
)
from graphbatch.pipeline import check_for_errors


@pytest.mark.parametrize("node", [None, False])
def test_false_and_null_are_not_errors(node):
    assert check_for_errors(node) is None


@pytest.mark.parametrize("node", [{"id": "1"}, [1, 2], "text", 3, True])
def test_regular_nodes_pass_through(node):
    assert check_for_errors(node) == node


@pytest.mark.parametrize(
    "code, error_class",
    [
        (0, AuthError),
        (101, AuthError),
        (102, AuthError),
        (190, AuthError),
        (200, PermissionDeniedError),
        (250, PermissionDeniedError),
        (299, PermissionDeniedError),
        (601, QuerySyntaxError),
    ],
)
def test_legacy_error_codes(code, error_class):
    with pytest.raises(error_class) as caught:
        check_for_errors({"error_code": code, "error_msg": "nope"})
    assert caught.value.code == code


def test_unknown_legacy_code_is_generic_remote_error():
    with pytest.raises(RemoteError) as caught:
        check_for_errors({"error_code": 1, "error_msg": "An unknown error occurred"})
    assert type(caught.value) is RemoteError
    assert caught.value.code == 1
    assert str(caught.value) == "An unknown error occurred (code 1)"


def test_non_numeric_legacy_code_is_protocol_violation():
    with pytest.raises(ProtocolViolationError):
        check_for_errors({"error_code": "abc", "error_msg": "?"})


def test_batch_error_shape():
    with pytest.raises(AuthError) as caught:
        check_for_errors({"error": 190, "error_description": "Invalid OAuth access token signature."})
    assert caught.value.code == 190


def test_error_without_description_is_not_an_error():
    node = {"error": 190}
    assert check_for_errors(node) == node


@pytest.mark.parametrize(
    "error_type, error_class",
    [
        ("OAuthException", AuthError),
        ("OAuthAccessTokenException", AccessTokenError),
        ("QueryParseException", QuerySyntaxError),
    ],
)
def test_graph_error_types(error_type, error_class):
    node = {"error": {"type": error_type, "message": "bad", "code": 1, "error_subcode": 463}}
    with pytest.raises(error_class) as caught:
        check_for_errors(node)
    assert caught.value.type == error_type
    assert caught.value.subcode == 463


def test_unknown_graph_error_type_is_generic():
    node = {"error": {"type": "GraphMethodException", "message": "Unsupported get request."}}
    with pytest.raises(RemoteError) as caught:
        check_for_errors(node)
    assert type(caught.value) is RemoteError
    assert str(caught.value) == "GraphMethodException: Unsupported get request."


@pytest.mark.parametrize(
    "error",
    [
        {"type": "OAuthException", "message": "(#10) Not allowed", "code": 10},
        {"type": "OAuthException", "message": "Requires extended permission", "code": 270},
        {"type": "OAuthException", "message": "(#200) Requires extended permission"},
    ],
)
def test_graph_permission_errors(error):
    with pytest.raises(PermissionDeniedError):
        check_for_errors({"error": error})


def test_graph_error_user_fields():
    node = {
        "error": {
            "type": "OAuthException",
            "message": "Error validating access token",
            "code": 190,
            "error_user_title": "Session expired",
            "error_user_msg": "Please log in again.",
        }
    }
    with pytest.raises(AuthError) as caught:
        check_for_errors(node)
    assert caught.value.user_title == "Session expired"
    assert caught.value.user_message == "Please log in again."


def test_resource_migrated_error():
    message = (
        "(#21) Page ID 114267748588304 was migrated to page ID 111013272313096."
        "  Please update your API calls to the new ID"
    )
    with pytest.raises(ResourceMigratedError) as caught:
        check_for_errors({"error": {"type": "OAuthException", "message": message, "code": 21}})
    assert caught.value.old_id == 114267748588304
    assert caught.value.new_id == 111013272313096


def test_unparseable_migration_message_is_protocol_violation():
    node = {"error": {"type": "OAuthException", "message": "(#21) Page was migrated", "code": 21}}
    with pytest.raises(ProtocolViolationError):
        check_for_errors(node)


def test_error_for_code_never_returns_none():
    assert isinstance(error_for_code(code=12345, message="x"), RemoteError)
