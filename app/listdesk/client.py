from __future__ import annotations

import json
import mimetypes
import time
import urllib.error
import urllib.parse
import urllib.request
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any


class ListDeskClientError(RuntimeError):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.message = message


@dataclass(frozen=True)
class ListDeskClient:
    """
    HTTP client for the ListDesk JSON API.

    Base URL and credential are fixed per instance; nothing is read from or
    written to module-level state. `login()`/`register()` return a new client
    bound to the issued token.
    """

    base_url: str
    token: str | None = None
    timeout_seconds: int = 60

    def with_token(self, token: str | None) -> "ListDeskClient":
        return replace(self, token=token)

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        h = {"Accept": "application/json"}
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        if extra:
            h.update(extra)
        return h

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        data: bytes | None = None,
        content_type: str | None = None,
        retries: int = 2,
    ) -> Any:
        url = self.base_url.rstrip("/") + path
        if params:
            url += "?" + urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})

        extra: dict[str, str] = {}
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            extra["Content-Type"] = "application/json"
        elif content_type:
            extra["Content-Type"] = content_type

        last_err: Exception | None = None
        for attempt in range(retries + 1):
            req = urllib.request.Request(url, data=data, method=method, headers=self._headers(extra))
            try:
                with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                    raw = resp.read()
            except urllib.error.HTTPError as e:
                try:
                    payload = json.loads(e.read().decode("utf-8") or "{}")
                except ValueError:
                    payload = {}
                message = payload.get("message") if isinstance(payload, dict) else None
                raise ListDeskClientError(e.code, message or e.reason or "request failed") from e
            except urllib.error.URLError as e:
                # only connection-level failures are retried
                last_err = e
                time.sleep(min(1 * (attempt + 1), 5))
                continue
            try:
                return json.loads(raw.decode("utf-8")) if raw else None
            except ValueError as e:
                raise ListDeskClientError(0, f"Invalid JSON from {path}") from e
        raise ListDeskClientError(0, f"Request failed after retries: {last_err}")

    # ---------- Auth ----------
    def login(self, email: str, password: str) -> "ListDeskClient":
        j = self.request_json("POST", "/api/auth/login", body={"email": email, "password": password})
        return self.with_token(j["token"])

    def register(self, name: str, email: str, password: str) -> "ListDeskClient":
        j = self.request_json("POST", "/api/auth/register", body={"name": name, "email": email, "password": password})
        return self.with_token(j["token"])

    # ---------- Agents ----------
    def list_agents(self) -> list[dict[str, Any]]:
        return self.request_json("GET", "/api/agents")

    def create_agent(self, *, name: str, email: str, mobile_number: str, password: str) -> dict[str, Any]:
        return self.request_json(
            "POST",
            "/api/agents",
            body={"name": name, "email": email, "mobileNumber": mobile_number, "password": password},
        )

    def update_agent(self, agent_id: int, *, name: str, email: str, mobile_number: str) -> dict[str, Any]:
        return self.request_json(
            "PUT",
            f"/api/agents/{agent_id}",
            body={"name": name, "email": email, "mobileNumber": mobile_number},
        )

    def delete_agent(self, agent_id: int) -> dict[str, Any]:
        return self.request_json("DELETE", f"/api/agents/{agent_id}")

    # ---------- Lists ----------
    def upload_list(self, path: str | Path) -> dict[str, Any]:
        p = Path(path)
        boundary = uuid.uuid4().hex
        ctype = mimetypes.guess_type(p.name)[0] or "application/octet-stream"
        body = b"".join(
            [
                f"--{boundary}\r\n".encode(),
                f'Content-Disposition: form-data; name="file"; filename="{p.name}"\r\n'.encode(),
                f"Content-Type: {ctype}\r\n\r\n".encode(),
                p.read_bytes(),
                f"\r\n--{boundary}--\r\n".encode(),
            ]
        )
        return self.request_json(
            "POST",
            "/api/lists/upload",
            data=body,
            content_type=f"multipart/form-data; boundary={boundary}",
            retries=0,
        )

    def list_items(self, *, agent_id: int | None = None, q: str | None = None) -> list[dict[str, Any]]:
        return self.request_json("GET", "/api/lists", params={"agentId": agent_id, "q": q})

    def summary(self) -> dict[str, Any]:
        return self.request_json("GET", "/api/lists/summary")

    def delete_item(self, item_id: int) -> dict[str, Any]:
        return self.request_json("DELETE", f"/api/lists/{item_id}")

    def delete_file(self, filename: str) -> dict[str, Any]:
        return self.request_json("DELETE", f"/api/lists/file/{urllib.parse.quote(filename, safe='')}")
