"""
Inference gateway for Synax.

This module is the only place that *directly* talks to the language model.  Everything else
(router, agents, dispatch loop) stays backend-agnostic and goes through :class:`InferenceGateway`.

The backend is an Ollama-compatible server:

* ``POST /api/generate`` with ``stream=false`` returns ``{"response": "..."}``.
* ``POST /api/generate`` with ``stream=true`` returns newline-delimited JSON fragments, each with
  an incremental ``response`` and the last one flagged ``"done": true``.
* ``GET /api/tags`` is used as a liveness probe.
"""

import json
import logging
from typing import (
    Any,
    AsyncIterator,
    Dict,
    Mapping,
)

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sampling presets
# ---------------------------------------------------------------------------
ROUTING_OPTIONS: Mapping[str, Any] = {"temperature": 0.1, "top_p": 0.9, "top_k": 10}
SELECTION_OPTIONS: Mapping[str, Any] = {"temperature": 0.1, "num_predict": 1024}
PLANNING_OPTIONS: Mapping[str, Any] = {"temperature": 0.2, "top_p": 0.9, "top_k": 40}
EXECUTION_OPTIONS: Mapping[str, Any] = {"temperature": 0.3, "top_p": 0.9, "top_k": 40}
REPAIR_OPTIONS: Mapping[str, Any] = {"temperature": 0.5, "top_p": 0.9, "top_k": 40}
CONVERSATION_OPTIONS: Mapping[str, Any] = {"temperature": 0.7, "top_p": 0.9, "top_k": 40}


class TransportError(RuntimeError):
    """Raised when the inference backend cannot be reached or answers with an error."""


def _error_detail(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP error! status: {resp.status_code}"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"HTTP error! status: {resp.status_code}"


class InferenceGateway:
    """Thin async client around the generation endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport  # injectable for tests (httpx.MockTransport)

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self._transport,
        )

    def _payload(self, prompt: str, stream: bool, options: Mapping[str, Any] | None) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": stream,
            "options": dict(options or {}),
        }

    async def generate(
        self,
        prompt: str,
        options: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> str:
        """
        Run a single-shot completion and return the generated text.

        Raises
        ------
        TransportError
            On timeouts, connection failures, non-success status or an unexpected body.
        """
        payload = self._payload(prompt, False, options)
        try:
            async with self._client(timeout) as client:
                resp = await client.post("/api/generate", json=payload)
                if resp.status_code >= 400:
                    raise TransportError(_error_detail(resp))
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.error("Inference request error: %s", exc)
            raise TransportError(f"Error calling inference backend: {exc}") from exc
        except ValueError as exc:
            # JSONDecodeError and UnicodeDecodeError
            raise TransportError(f"Invalid JSON from inference backend: {exc}") from exc

        if not isinstance(data, dict):
            raise TransportError("Inference backend returned an unexpected payload")
        content = data.get("response") or ""
        logger.debug("Inference response: %s", content)
        return str(content)

    async def stream(
        self,
        prompt: str,
        options: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> AsyncIterator[str]:
        """
        Yield response fragments as they arrive.

        Lines that are not JSON objects are skipped with a warning; the stream ends on a fragment
        flagged ``done`` or at the end of the body.
        """
        payload = self._payload(prompt, True, options)
        try:
            async with self._client(timeout) as client:
                async with client.stream("POST", "/api/generate", json=payload) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                        raise TransportError(_error_detail(resp))
                    async for line in resp.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            chunk = json.loads(line)
                        except json.JSONDecodeError:
                            logger.warning("Skipping malformed stream line: %r", line)
                            continue
                        if not isinstance(chunk, dict):
                            logger.warning("Skipping non-object stream line: %r", line)
                            continue
                        fragment = chunk.get("response")
                        if fragment:
                            yield str(fragment)
                        if chunk.get("done"):
                            break
        except httpx.HTTPError as exc:
            logger.error("Inference stream error: %s", exc)
            raise TransportError(f"Error reading response stream: {exc}") from exc

    async def ping(self) -> bool:
        """Return True when the backend answers on ``/api/tags``."""
        try:
            async with self._client(5.0) as client:
                resp = await client.get("/api/tags")
                return resp.status_code < 400
        except httpx.HTTPError as exc:
            logger.info("Inference backend unreachable: %s", exc)
            return False
