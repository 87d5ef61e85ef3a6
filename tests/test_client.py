import io
import json
import urllib.error

import pytest

from app.listdesk import client as client_mod
from app.listdesk.client import ListDeskClient, ListDeskClientError


class _Resp:
    def __init__(self, payload):
        self._raw = json.dumps(payload).encode("utf-8")

    def read(self):
        return self._raw

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture()
def calls(monkeypatch):
    seen = []
    replies = []

    def fake_urlopen(req, timeout=None):
        seen.append(req)
        reply = replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return _Resp(reply)

    monkeypatch.setattr(client_mod.urllib.request, "urlopen", fake_urlopen)
    monkeypatch.setattr(client_mod.time, "sleep", lambda _s: None)
    return seen, replies


def test_login_returns_bound_client(calls):
    seen, replies = calls
    replies.append({"token": "abc", "user": {"id": 1}})

    anon = ListDeskClient(base_url="http://listdesk.test/")
    authed = anon.login("admin@example.com", "pw1234")

    assert anon.token is None
    assert authed.token == "abc"
    assert seen[0].full_url == "http://listdesk.test/api/auth/login"
    assert json.loads(seen[0].data) == {"email": "admin@example.com", "password": "pw1234"}

    replies.append([])
    authed.list_agents()
    assert seen[1].get_header("Authorization") == "Bearer abc"


def test_list_items_skips_empty_params(calls):
    seen, replies = calls
    replies.append([])
    ListDeskClient(base_url="http://listdesk.test", token="t").list_items(agent_id=3)
    assert seen[0].full_url == "http://listdesk.test/api/lists?agentId=3"


def test_http_error_carries_server_message(calls):
    seen, replies = calls
    replies.append(
        urllib.error.HTTPError(
            "http://listdesk.test/api/lists/upload", 400, "Bad Request", {},
            io.BytesIO(b'{"message": "No agents found. Please create agents first."}'),
        )
    )
    with pytest.raises(ListDeskClientError) as exc:
        ListDeskClient(base_url="http://listdesk.test", token="t").summary()
    assert exc.value.status == 400
    assert exc.value.message == "No agents found. Please create agents first."
    assert len(seen) == 1


def test_connection_errors_are_retried(calls):
    seen, replies = calls
    replies.extend([urllib.error.URLError("refused"), {"totalItems": 0, "agentsCount": 0, "distribution": []}])
    out = ListDeskClient(base_url="http://listdesk.test", token="t").summary()
    assert out["totalItems"] == 0
    assert len(seen) == 2


def test_upload_builds_multipart(calls, tmp_path):
    seen, replies = calls
    replies.append({"message": "ok"})
    path = tmp_path / "contacts.csv"
    path.write_bytes(b"FirstName,Phone\nAlice,111\n")

    ListDeskClient(base_url="http://listdesk.test", token="t").upload_list(path)

    req = seen[0]
    assert req.get_method() == "POST"
    assert req.get_header("Content-type").startswith("multipart/form-data; boundary=")
    assert b'filename="contacts.csv"' in req.data
    assert b"Alice,111" in req.data


def test_delete_file_quotes_name(calls):
    seen, replies = calls
    replies.append({"message": "0 items removed successfully", "deletedCount": 0})
    ListDeskClient(base_url="http://listdesk.test", token="t").delete_file("my list.csv")
    assert seen[0].full_url == "http://listdesk.test/api/lists/file/my%20list.csv"
    assert seen[0].get_method() == "DELETE"
