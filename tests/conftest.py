"""Shared fakes: an Ollama-like backend served through httpx.MockTransport and a tool server."""

import json
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
)

import httpx
import pytest

from synax.core.schema import (
    ContentItem,
    ToolResponse,
    ToolSpec,
)
from synax.llm.gateway import InferenceGateway
from synax.memory.transcript import Transcript
from synax.tools import ToolDirectory

Reply = Any  # str -> {"response": str}; int -> error status; Exception -> raised


class FakeOllama:
    """
    Answers ``/api/generate`` according to which agent wrote the prompt.

    Each role holds a list of replies consumed in order; the last one repeats.
    """

    ROLES = {
        "routing": "You are a routing agent",
        "selection": "You are a tool selection agent",
        "planning": "You are a planning agent",
        "control": "You are a control agent",
        "execution": "** TOOLS:**",
        "conversation": "ALWAYS answer in the language",
    }

    def __init__(self, **replies: Reply) -> None:
        self.replies: Dict[str, List[Reply]] = {}
        for role, reply in replies.items():
            self.replies[role] = list(reply) if isinstance(reply, list) else [reply]
        self.requests: List[Dict[str, Any]] = []
        self.tags_status = 200

    def role_of(self, prompt: str) -> str:
        for role, marker in self.ROLES.items():
            if marker in prompt:
                return role
        return "unknown"

    def calls(self, role: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if self.role_of(r["prompt"]) == role]

    def _next(self, role: str) -> Reply:
        queue = self.replies.get(role)
        if not queue:
            raise AssertionError(f"unexpected {role} request")
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(self.tags_status, json={"models": []})

        payload = json.loads(request.content)
        self.requests.append(payload)
        reply = self._next(self.role_of(payload["prompt"]))

        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, int):
            return httpx.Response(reply, json={"error": f"status {reply}"})
        if payload.get("stream"):
            parts = [reply[i : i + 4] for i in range(0, len(reply), 4)]
            lines = [json.dumps({"response": part, "done": False}) for part in parts]
            lines.append(json.dumps({"response": "", "done": True}))
            return httpx.Response(200, content="\n".join(lines).encode())
        return httpx.Response(200, json={"response": reply})


class FakeToolServer:
    """In-memory tool transport recording every call."""

    def __init__(self, name: str = "fake", responses: Mapping[str, Any] | None = None) -> None:
        self.name = name
        self.responses = dict(responses or {})
        self.calls: List[tuple] = []

    async def call_tool(self, tool_name: str, arguments: Mapping[str, Any]) -> ToolResponse:
        self.calls.append((tool_name, dict(arguments)))
        response = self.responses.get(tool_name, f"{tool_name} done")
        if isinstance(response, Exception):
            raise response
        if isinstance(response, ToolResponse):
            return response
        return ToolResponse(content=[ContentItem(type="text", text=str(response))])


def connect_error() -> httpx.ConnectError:
    return httpx.ConnectError("connection refused")


@pytest.fixture
def make_gateway() -> Callable[[FakeOllama], InferenceGateway]:
    def factory(backend: FakeOllama) -> InferenceGateway:
        return InferenceGateway(
            "http://ollama.test", "mistral", timeout=5.0, transport=httpx.MockTransport(backend)
        )

    return factory


@pytest.fixture
def list_directory_tool() -> ToolSpec:
    return ToolSpec.from_input_schema(
        "list-directory",
        "List the files of a directory",
        {
            "type": "object",
            "properties": {"path": {"type": "string", "description": "Directory to list"}},
            "required": ["path"],
        },
    )


@pytest.fixture
def shell_tool() -> ToolSpec:
    return ToolSpec.from_input_schema(
        "execute-shell-command",
        "Run a shell command",
        {"properties": {"command": {"type": "string"}}, "required": ["command"]},
    )


@pytest.fixture
def transcript() -> Transcript:
    return Transcript()


@pytest.fixture
def server() -> FakeToolServer:
    return FakeToolServer("files", {"list-directory": "a.txt\nb.txt"})


@pytest.fixture
def directory(server: FakeToolServer, list_directory_tool: ToolSpec, shell_tool: ToolSpec) -> ToolDirectory:
    directory = ToolDirectory()
    directory.register(list_directory_tool, server)
    directory.register(shell_tool, server)
    return directory
