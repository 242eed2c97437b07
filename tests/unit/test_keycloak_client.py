"""Tests for the Keycloak HTTP client and the group/user services."""
import threading
import time
from datetime import datetime, timedelta

import pytest
import requests

from conftest import StubResponse
from groupsvc.core.keycloak import (
    GroupService,
    KeycloakAPIError,
    KeycloakClient,
    KeycloakUnavailableError,
    UserNotFoundError,
    UserService,
    create_client_with_token,
)

KC_URL = "http://keycloak.test:8080"


class Recorder:
    """Collects outgoing requests and answers from a queue of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, url, *args, **kwargs):
        self.calls.append((url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        response.url = response.url or url
        return response


# ─────────────────────────────────────────────────────────────────────────────
# KeycloakClient
# ─────────────────────────────────────────────────────────────────────────────
def test_bearer_token_is_forwarded(monkeypatch):
    recorder = Recorder(StubResponse([]))
    monkeypatch.setattr(requests, "get", recorder)

    client = create_client_with_token(KC_URL + "/", "caller-token", timeout=2)
    client.get("/admin/realms/demo/groups", params={"search": "qa"})

    url, kwargs = recorder.calls[0]
    assert url == f"{KC_URL}/admin/realms/demo/groups"
    assert kwargs["headers"]["Authorization"] == "Bearer caller-token"
    assert kwargs["params"] == {"search": "qa"}
    assert kwargs["timeout"] == 2


def test_unauthenticated_client_refuses_requests():
    with pytest.raises(KeycloakAPIError) as exc_info:
        KeycloakClient(KC_URL).get("/admin/realms/demo/groups")
    assert exc_info.value.is_unauthorized


def test_http_error_raises_api_error(monkeypatch):
    monkeypatch.setattr(requests, "put", Recorder(StubResponse({"error": "nope"}, status_code=403)))

    with pytest.raises(KeycloakAPIError) as exc_info:
        create_client_with_token(KC_URL, "t").put("/admin/realms/demo/groups/g1", json={})

    assert exc_info.value.status_code == 403
    assert not exc_info.value.is_unauthorized


def test_transport_error_raises_unavailable(monkeypatch):
    monkeypatch.setattr(requests, "get", Recorder(requests.ConnectionError("refused")))

    with pytest.raises(KeycloakUnavailableError) as exc_info:
        create_client_with_token(KC_URL, "t").get("/admin/realms/demo/groups")
    assert "refused" in exc_info.value.reason


def test_service_account_token_is_fetched_and_used(monkeypatch):
    get = Recorder(StubResponse([]))
    monkeypatch.setattr(requests, "get", get)

    client = KeycloakClient(KC_URL)
    assert client.authenticate_service_account("demo", "automation-cli", "s3cret") == "service-token"
    client.get("/admin/realms/demo/users")

    assert client.is_authenticated
    assert get.calls[0][1]["headers"]["Authorization"] == "Bearer service-token"


def test_service_account_token_refreshes_before_expiry(monkeypatch):
    post = Recorder(
        StubResponse({"access_token": "first", "expires_in": 300}),
        StubResponse({"access_token": "second", "expires_in": 300}),
    )
    get = Recorder(StubResponse([]))
    monkeypatch.setattr(requests, "post", post)
    monkeypatch.setattr(requests, "get", get)

    client = KeycloakClient(KC_URL)
    client.authenticate_service_account("demo", "automation-cli", "s3cret")
    client._token_expires_at = datetime.now() + timedelta(seconds=5)
    client.get("/admin/realms/demo/users")

    assert len(post.calls) == 2
    assert post.calls[1][1]["data"]["grant_type"] == "client_credentials"
    assert get.calls[0][1]["headers"]["Authorization"] == "Bearer second"


def test_service_account_rejected_credentials(monkeypatch):
    monkeypatch.setattr(requests, "post", Recorder(StubResponse({"error": "unauthorized_client"}, status_code=401)))

    with pytest.raises(KeycloakAPIError) as exc_info:
        KeycloakClient(KC_URL).authenticate_service_account("demo", "automation-cli", "wrong")
    assert exc_info.value.status_code == 401


# ─────────────────────────────────────────────────────────────────────────────
# GroupService
# ─────────────────────────────────────────────────────────────────────────────
def test_get_groups_exact_search(monkeypatch):
    get = Recorder(StubResponse([{"id": "g1", "name": "qa-team"}]))
    monkeypatch.setattr(requests, "get", get)

    groups = GroupService(KC_URL).get_groups("t", "demo", search="qa-team", exact=True)

    assert groups == [{"id": "g1", "name": "qa-team"}]
    assert get.calls[0][1]["params"] == {"search": "qa-team", "exact": "true"}


def test_get_groups_without_filter_sends_no_params(monkeypatch):
    get = Recorder(StubResponse(None))
    monkeypatch.setattr(requests, "get", get)

    assert GroupService(KC_URL).get_groups("t", "demo") == []
    assert get.calls[0][1]["params"] is None


def test_get_group_by_path_quotes_and_handles_404(monkeypatch):
    get = Recorder(StubResponse(None, status_code=404))
    monkeypatch.setattr(requests, "get", get)

    assert GroupService(KC_URL).get_group_by_path("t", "demo", "qa team") is None
    assert get.calls[0][0] == f"{KC_URL}/admin/realms/demo/group-by-path/qa%20team"


def test_get_group_by_path_other_errors_propagate(monkeypatch):
    monkeypatch.setattr(requests, "get", Recorder(StubResponse(None, status_code=500)))

    with pytest.raises(KeycloakAPIError):
        GroupService(KC_URL).get_group_by_path("t", "demo", "/qa-team")


def test_create_group_reads_id_from_location(monkeypatch):
    post = Recorder(StubResponse(None, status_code=201, headers={"Location": f"{KC_URL}/admin/realms/demo/groups/abc-123"}))
    monkeypatch.setattr(requests, "post", post)

    group = {"name": "qa-team", "attributes": {"longName": ["QA"]}}
    assert GroupService(KC_URL).create_group("t", "demo", group) == "abc-123"
    assert post.calls[0][1]["json"] == group


def test_create_group_falls_back_to_path_lookup(monkeypatch):
    monkeypatch.setattr(requests, "post", Recorder(StubResponse(None, status_code=201)))
    get = Recorder(StubResponse({"id": "looked-up", "name": "qa-team", "path": "/qa-team"}))
    monkeypatch.setattr(requests, "get", get)

    assert GroupService(KC_URL).create_group("t", "demo", {"name": "qa-team"}) == "looked-up"
    assert get.calls[0][0].endswith("/group-by-path/qa-team")


def test_create_group_conflict(monkeypatch):
    monkeypatch.setattr(requests, "post", Recorder(StubResponse({"errorMessage": "exists"}, status_code=409)))

    with pytest.raises(KeycloakAPIError) as exc_info:
        GroupService(KC_URL).create_group("t", "demo", {"name": "qa-team"})
    assert exc_info.value.is_conflict


def test_update_group_puts_to_id(monkeypatch):
    put = Recorder(StubResponse(None, status_code=204))
    monkeypatch.setattr(requests, "put", put)

    GroupService(KC_URL).update_group("t", "demo", {"id": "g1", "name": "qa-team"})

    assert put.calls[0][0] == f"{KC_URL}/admin/realms/demo/groups/g1"


def test_get_group_members(monkeypatch):
    get = Recorder(StubResponse([{"id": "u1"}, {"id": "u2"}]))
    monkeypatch.setattr(requests, "get", get)

    assert len(GroupService(KC_URL).get_group_members("t", "demo", "g1")) == 2
    assert get.calls[0][0] == f"{KC_URL}/admin/realms/demo/groups/g1/members"


# ─────────────────────────────────────────────────────────────────────────────
# UserService
# ─────────────────────────────────────────────────────────────────────────────
def test_effective_realm_roles(monkeypatch):
    get = Recorder(
        StubResponse([{"id": "u9", "username": "alice-admin"}, {"id": "u1", "username": "alice"}]),
        StubResponse([{"name": "developer"}, {"name": "GroupCreate"}, {"id": "no-name"}]),
    )
    monkeypatch.setattr(requests, "get", get)

    roles = UserService(create_client_with_token(KC_URL, "t")).get_effective_realm_roles("demo", "alice")

    assert roles == {"developer", "GroupCreate"}
    assert get.calls[1][0] == f"{KC_URL}/admin/realms/demo/users/u1/role-mappings/realm/composite"


def test_effective_realm_roles_unknown_user(monkeypatch):
    monkeypatch.setattr(requests, "get", Recorder(StubResponse([{"id": "u9", "username": "alice-admin"}])))

    with pytest.raises(UserNotFoundError):
        UserService(create_client_with_token(KC_URL, "t")).get_effective_realm_roles("demo", "alice")


# ─────────────────────────────────────────────────────────────────────────────
# Non-JSON bodies, member paging, concurrent refresh
# ─────────────────────────────────────────────────────────────────────────────
class HtmlResponse(StubResponse):
    """200 answer from a proxy login page instead of Keycloak JSON."""

    def __init__(self, url: str = ""):
        super().__init__(None, status_code=200, url=url)
        self.text = "<html><body>Sign in</body></html>"

    def json(self):
        raise requests.JSONDecodeError("Expecting value", self.text, 0)


def test_non_json_group_listing_is_api_error(monkeypatch):
    monkeypatch.setattr(requests, "get", Recorder(HtmlResponse()))

    with pytest.raises(KeycloakAPIError) as exc_info:
        GroupService(KC_URL).get_groups("t", "demo")
    assert exc_info.value.status_code == 200
    assert "<html>" not in exc_info.value.message


def test_non_json_member_listing_is_api_error(monkeypatch):
    monkeypatch.setattr(requests, "get", Recorder(HtmlResponse()))

    with pytest.raises(KeycloakAPIError):
        GroupService(KC_URL).get_group_members("t", "demo", "g1")


def test_json_programming_errors_are_not_masked(monkeypatch):
    class BrokenResponse(StubResponse):
        def json(self):
            raise TypeError("bug")

    monkeypatch.setattr(requests, "get", Recorder(BrokenResponse()))

    with pytest.raises(TypeError):
        GroupService(KC_URL).get_groups("t", "demo")


def test_get_group_members_pages_past_default_limit(monkeypatch):
    get = Recorder(
        StubResponse([{"id": f"u{i}"} for i in range(100)]),
        StubResponse([{"id": f"u{i}"} for i in range(100, 200)]),
        StubResponse([{"id": f"u{i}"} for i in range(200, 230)]),
    )
    monkeypatch.setattr(requests, "get", get)

    members = GroupService(KC_URL).get_group_members("t", "demo", "g1")

    assert len(members) == 230
    assert [call[1]["params"]["first"] for call in get.calls] == [0, 100, 200]
    assert {call[1]["params"]["max"] for call in get.calls} == {100}
    assert all(call[1]["params"]["briefRepresentation"] == "true" for call in get.calls)


def test_get_group_members_exact_page_needs_one_more_request(monkeypatch):
    get = Recorder(StubResponse([{}] * 100), StubResponse([]))
    monkeypatch.setattr(requests, "get", get)

    assert len(GroupService(KC_URL).get_group_members("t", "demo", "g1")) == 100
    assert len(get.calls) == 2


def test_concurrent_refresh_fetches_one_token(monkeypatch):
    fetches = []

    def _post(url, *args, **kwargs):
        fetches.append(url)
        time.sleep(0.02)
        return StubResponse({"access_token": f"token-{len(fetches)}", "expires_in": 300}, url=url)

    monkeypatch.setattr(requests, "post", _post)

    client = KeycloakClient(KC_URL)
    client.authenticate_service_account("demo", "automation-cli", "s3cret")
    client._token_expires_at = datetime.now()

    start = threading.Barrier(8, timeout=5)
    tokens = []

    def _worker():
        start.wait()
        tokens.append(client._ensure_authenticated())

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(fetches) == 2
    assert set(tokens) == {"token-2"}
