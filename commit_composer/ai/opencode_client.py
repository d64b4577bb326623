"""
opencode-server based generation client for commit-composer.

The opencode server exposes a small session API over HTTP. Each request
gets its own session, which is deleted as soon as the reply has been
read; sessions are never shared between requests. OpencodeServer owns
the connection and, when no server is already listening, a spawned
`opencode serve` process that must be shut down on exit.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional
from urllib.parse import urlsplit

import httpx

from ..config import ModelSelection
from ..errors import GenerationAuthError, GenerationError
from .interface import GenerationClient, extract_text

LOG = logging.getLogger(__name__)

# Waiting on the model can take minutes; only connecting is bounded.
DEFAULT_TIMEOUT = httpx.Timeout(None, connect=10.0)

_AUTH_ERROR_MARKERS = {"providerautherror", "provider_auth_error", "auth_error", "unauthorized"}


class OpencodeClient(GenerationClient):
    """
    Generation client talking to an opencode server over HTTP.
    """

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.Client(base_url=self.base_url, timeout=DEFAULT_TIMEOUT)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "OpencodeClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise GenerationError(f"failed to reach opencode server at {self.base_url}: {exc}") from exc

        if response.status_code in (401, 403):
            raise GenerationAuthError(
                "opencode server rejected the request "
                f"({response.status_code}); run `opencode auth login` to authenticate"
            )
        if response.is_error:
            raise GenerationError(
                f"opencode server returned HTTP {response.status_code} for {method} {url}: {response.text[:200]}"
            )
        return response

    def check_connection(self) -> bool:
        """
        Return True if a server answers at base_url.
        """

        try:
            self._request("GET", "/config")
        except GenerationAuthError:
            raise
        except GenerationError as exc:
            LOG.debug("opencode server not reachable: %s", exc)
            return False
        return True

    @contextmanager
    def session(self, title: str) -> Iterator[str]:
        """
        Create a session and delete it when the block exits.
        """

        response = self._request("POST", "/session", json={"title": title})
        session_id = _json(response).get("id")
        if not session_id:
            raise GenerationError("failed to create session")
        LOG.debug("Created opencode session %s (%s)", session_id, title)

        try:
            yield session_id
        finally:
            try:
                self._request("DELETE", f"/session/{session_id}")
                LOG.debug("Deleted opencode session %s", session_id)
            except GenerationError as exc:
                LOG.warning("Failed to delete opencode session %s: %s", session_id, exc)

    def prompt(self, session_id: str, text: str, model: ModelSelection) -> Dict[str, Any]:
        body = {
            "model": {"providerID": model.provider, "modelID": model.model},
            "parts": [{"type": "text", "text": text}],
        }
        LOG.debug("Prompting session %s with model %s (%d chars)", session_id, model, len(text))
        data = _json(self._request("POST", f"/session/{session_id}/message", json=body))
        if not data:
            raise GenerationError("failed to get AI response")
        return data

    def complete(self, prompt: str, model: ModelSelection, title: str) -> str:
        with self.session(title) as session_id:
            data = self.prompt(session_id, prompt, model)

        info = data.get("info")
        if isinstance(info, Mapping) and info.get("error"):
            _raise_provider_error(info["error"], model)

        parts: List[Any] = data.get("parts") or []
        text = extract_text(parts)
        if not text:
            if parts:
                part_types = ", ".join(str(part.get("type")) for part in parts if isinstance(part, Mapping))
                LOG.error("Received response with parts but no text content. Part types: %s", part_types)
            else:
                LOG.error("Received response with no parts")
            raise GenerationError("no output generated: the AI model returned an empty response")
        return text


def _json(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise GenerationError(f"opencode server returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise GenerationError("opencode server returned an unexpected payload")
    return data


def _raise_provider_error(error: Any, model: ModelSelection) -> None:
    if not isinstance(error, Mapping):
        raise GenerationError(f"AI provider error: {error}")

    data = error.get("data") if isinstance(error.get("data"), Mapping) else {}
    markers = {str(error.get(key, "")).lower() for key in ("name", "code", "type")}
    if markers & _AUTH_ERROR_MARKERS:
        raise GenerationAuthError(
            f"authentication failed for provider {model.provider}; "
            "check your credentials with `opencode auth login`"
        )

    detail = error.get("message") or data.get("message") or error.get("code") or error.get("name")
    raise GenerationError(f"AI provider error: {detail or 'unknown error'}")


class OpencodeServer:
    """
    Handle on the opencode server used for one invocation.

    start() attaches to a server already listening at base_url or spawns
    `opencode serve`. close() releases the HTTP client and stops any
    process we spawned; it is safe to call more than once.
    """

    def __init__(
        self,
        base_url: str,
        executable: str = "opencode",
        startup_timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url
        self.executable = executable
        self.startup_timeout = startup_timeout
        self.client: Optional[OpencodeClient] = None
        self._process: Optional[subprocess.Popen] = None

    def start(self) -> OpencodeClient:
        if self.client is not None:
            return self.client

        client = OpencodeClient(self.base_url)
        if client.check_connection():
            LOG.debug("Attached to running opencode server at %s", self.base_url)
            self.client = client
            return client

        binary = shutil.which(self.executable)
        if binary is None:
            client.close()
            raise GenerationError(
                "OpenCode CLI is not installed; install it with "
                "`npm install -g opencode-ai` or `brew install sst/tap/opencode`"
            )

        parts = urlsplit(self.base_url)
        cmd = [binary, "serve", "--hostname", parts.hostname or "127.0.0.1", "--port", str(parts.port or 4096)]
        LOG.debug("Spawning opencode server: %s", " ".join(cmd))
        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            client.close()
            raise GenerationError(f"failed to start opencode server: {exc}") from exc

        self.client = client
        deadline = time.monotonic() + self.startup_timeout
        while time.monotonic() < deadline:
            if self._process.poll() is not None:
                self.close()
                raise GenerationError("opencode server exited during startup; make sure OpenCode is configured")
            if client.check_connection():
                return client
            time.sleep(0.2)

        self.close()
        raise GenerationError(f"timed out waiting for opencode server at {self.base_url}")

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None

        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        LOG.debug("Stopping opencode server (pid %s)", process.pid)
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def __enter__(self) -> OpencodeClient:
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
