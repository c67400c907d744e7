"""
Unit tests for the admin REST client.

Uses an in-memory session so status-code handling, token refresh and
paging can be checked without network access.
"""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest
import requests

from pbi_monitor.core.admin_client import AdminApiClient, parse_retry_after
from pbi_monitor.utils.exceptions import (
    AuthenticationError,
    ConnectionError,
    RateLimitError,
    ResourceNotFoundError,
    ResponseParseError,
)
from tests.fixtures.sample_admin_data import (
    FakeSession,
    StaticTokenOAuth,
    make_config,
    odata,
    workspace_item,
)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def oauth():
    return StaticTokenOAuth()


@pytest.fixture
def client(session, oauth):
    return AdminApiClient(make_config(), oauth_client=oauth, session=session)


class TestStatusHandling:
    def test_success_returns_body(self, client, session):
        session.add("GET", "/admin/groups", '{"value": []}')

        assert client.get("/admin/groups") == '{"value": []}'

    def test_bearer_token_sent(self, client, session):
        session.add("GET", "/admin/groups", '{"value": []}')

        client.get("/admin/groups")

        assert session.calls[0]["headers"]["Authorization"] == "Bearer test-token"

    def test_forbidden_raises_authentication_error(self, client, session):
        session.add("GET", "/admin/groups", (403, ""))

        with pytest.raises(AuthenticationError):
            client.get("/admin/groups")
        assert len(session.calls) == 1

    def test_not_found(self, client, session):
        with pytest.raises(ResourceNotFoundError):
            client.get("/admin/groups/missing")

    def test_rate_limited(self, client, session):
        session.add("GET", "/admin/groups", (429, ""))

        with pytest.raises(RateLimitError) as exc_info:
            client.get("/admin/groups")
        assert exc_info.value.retry_after == 60

    def test_rate_limited_honours_retry_after_seconds(self, client, session):
        session.add("GET", "/admin/groups", (429, "", {"Retry-After": "120"}))

        with pytest.raises(RateLimitError) as exc_info:
            client.get("/admin/groups")
        assert exc_info.value.retry_after == 120

    def test_rate_limited_with_http_date(self, client, session):
        retry_at = datetime.now(timezone.utc) + timedelta(minutes=10)
        session.add(
            "GET", "/admin/groups", (429, "", {"Retry-After": format_datetime(retry_at, usegmt=True)})
        )

        with pytest.raises(RateLimitError) as exc_info:
            client.get("/admin/groups")
        assert 540 <= exc_info.value.retry_after <= 600

    @pytest.mark.parametrize(
        "status,error",
        [(401, AuthenticationError), (403, AuthenticationError), (404, ResourceNotFoundError), (429, RateLimitError)],
    )
    def test_error_keeps_response_body(self, client, session, status, error):
        body = '{"error": {"code": "PowerBIEntityNotFound", "message": "' + "x" * 800 + '"}}'
        session.add("GET", "/admin/groups", (status, body))

        with pytest.raises(error) as exc_info:
            client.get("/admin/groups")
        assert exc_info.value.details["response"] == body
        assert exc_info.value.details["status_code"] == status

    def test_server_error_keeps_response_body(self, client, session):
        session.add("GET", "/admin/groups", (500, '{"error": "boom"}'))

        with pytest.raises(ConnectionError) as exc_info:
            client.get("/admin/groups")
        assert exc_info.value.details["response"] == '{"error": "boom"}'
        assert exc_info.value.details["status_code"] == 500

    def test_transport_failure_becomes_connection_error(self, client, session):
        session.add("GET", "/admin/groups", requests.ConnectionError("unreachable"))

        with pytest.raises(ConnectionError, match="Failed to connect"):
            client.get("/admin/groups")


class TestTokenRefresh:
    def test_unauthorized_forces_refresh_and_retries_once(self, client, session, oauth):
        session.add("GET", "/admin/groups", [(401, ""), '{"value": []}'])

        assert client.get("/admin/groups") == '{"value": []}'
        assert oauth.forced_refreshes == 1
        assert len(session.calls) == 2

    def test_second_unauthorized_propagates(self, client, session, oauth):
        session.add("GET", "/admin/groups", [(401, ""), (401, "")])

        with pytest.raises(AuthenticationError):
            client.get("/admin/groups")
        assert len(session.calls) == 2


class TestPost:
    def test_post_sends_json_body(self, client, session):
        session.add("POST", "/groups/ws/datasets/ds/refreshes", (202, ""))

        assert client.post("/groups/ws/datasets/ds/refreshes", {"notifyOption": "NoNotification"}) == ""
        assert session.calls[0]["json"] == {"notifyOption": "NoNotification"}

    def test_post_defaults_to_empty_object(self, client, session):
        session.add("POST", "/x", (200, ""))

        client.post("/x")

        assert session.calls[0]["json"] == {}


class TestPaging:
    def test_pages_until_short_page(self, client, session):
        workspaces = [workspace_item(f"aaaaaaaa-0000-0000-0000-00000000000{i}", f"WS{i}") for i in range(5)]

        def route(params):
            skip, top = params["$skip"], params["$top"]
            return 200, odata(workspaces[skip:skip + top])

        session.add("GET", "/admin/groups", route)

        pages = list(client.get_paged("/admin/groups", page_size=2))

        assert [len(page) for page in pages] == [2, 2, 1]
        assert [call["params"]["$skip"] for call in session.calls] == [0, 2, 4]

    def test_exact_multiple_fetches_trailing_empty_page(self, client, session):
        def route(params):
            return 200, odata([{"id": "x"}] * 2 if params["$skip"] == 0 else [])

        session.add("GET", "/admin/groups", route)

        pages = list(client.get_paged("/admin/groups", page_size=2))

        assert [len(page) for page in pages] == [2, 0]

    def test_malformed_page_raises_parse_error(self, client, session):
        session.add("GET", "/admin/groups", "<html>oops</html>")

        with pytest.raises(ResponseParseError):
            list(client.get_paged("/admin/groups", page_size=10))


def test_validate_connection(client, session):
    session.add("GET", "/admin/groups", '{"value": []}')

    assert client.validate_connection() is True
    assert session.calls[0]["params"] == {"$top": 1}


class TestParseRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("30") == 30

    @pytest.mark.parametrize("value", [None, "", "soon", "Wed, 99 Foo 2026"])
    def test_unreadable_falls_back_to_default(self, value):
        assert parse_retry_after(value) == 60

    def test_past_date_is_zero(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0

    def test_future_date_counts_down(self):
        retry_at = datetime.now(timezone.utc) + timedelta(hours=1)

        assert 3590 <= parse_retry_after(format_datetime(retry_at, usegmt=True)) <= 3600
