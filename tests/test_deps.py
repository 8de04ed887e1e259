from starlette.requests import Request

from buzzsmile.api.deps import extract_token, get_optional_user
from buzzsmile.core.security import create_access_token
from conftest import run


def make_request(headers=None, query=b""):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": query,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    return Request(scope)


def test_bearer_header_wins_over_query_and_cookie():
    request = make_request({"Authorization": "Bearer header-token", "Cookie": "token=cookie-token"}, b"token=query")
    assert extract_token(request) == "header-token"


def test_query_then_cookie():
    assert extract_token(make_request({"Cookie": "token=cookie-token"}, b"token=query")) == "query"
    assert extract_token(make_request({"Cookie": "token=cookie-token"})) == "cookie-token"
    assert extract_token(make_request({"Authorization": "Basic abc"})) is None


def test_optional_user_never_fails(db, user):
    assert run(get_optional_user(make_request())) is None
    assert run(get_optional_user(make_request({"Authorization": "Bearer junk"}))) is None

    token = create_access_token(user["_id"])
    found = run(get_optional_user(make_request({"Authorization": f"Bearer {token}"})))
    assert found["email"] == "owner@example.com"
