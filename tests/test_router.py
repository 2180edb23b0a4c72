"""Tests for the conversation/tool router."""

import asyncio

import httpx
import pytest

from conftest import FakeOllama, connect_error
from synax.agent.router import route_request
from synax.core.schema import Route
from synax.llm.gateway import InferenceGateway


@pytest.mark.parametrize("connected, with_tools", [(False, True), (True, False), (False, False)])
def test_fast_path_makes_no_network_call(
    make_gateway, list_directory_tool, connected: bool, with_tools: bool
) -> None:
    """Without a connection or tools the router answers CONVERSATION offline."""

    backend = FakeOllama()
    tools = [list_directory_tool] if with_tools else []
    route = asyncio.run(route_request("list files in /tmp", make_gateway(backend), tools, connected))
    assert route is Route.CONVERSATION
    assert backend.requests == []


@pytest.mark.parametrize(
    "answer, expected",
    [
        ("TOOL - the user wants a listing", Route.TOOL),
        ("  tool: list-directory", Route.TOOL),
        ("CONVERSATION, just chatting", Route.CONVERSATION),
        ("I think TOOL", Route.CONVERSATION),
        ("", Route.CONVERSATION),
    ],
)
def test_decision_rule(make_gateway, list_directory_tool, answer: str, expected: Route) -> None:
    """Only answers starting with TOOL (case-insensitive, trimmed) route to tools."""

    backend = FakeOllama(routing=answer)
    route = asyncio.run(
        route_request("list files in /tmp", make_gateway(backend), [list_directory_tool], True)
    )
    assert route is expected
    (request,) = backend.requests
    assert request["stream"] is False
    assert request["options"]["temperature"] == 0.1
    assert "list-directory: List the files of a directory" in request["prompt"]


@pytest.mark.parametrize("failure", [500, connect_error()])
def test_transport_failure_degrades_to_conversation(make_gateway, list_directory_tool, failure) -> None:
    """Routing errors never abort the turn."""

    backend = FakeOllama(routing=failure)
    route = asyncio.run(route_request("hi", make_gateway(backend), [list_directory_tool], True))
    assert route is Route.CONVERSATION


def test_undecodable_answer_degrades_to_conversation(list_directory_tool) -> None:
    """A body that is not UTF-8 is a transport failure, not a crash."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b'{"response":"\xff TOOL"}')

    gateway = InferenceGateway("http://x", "m", transport=httpx.MockTransport(handler))
    route = asyncio.run(route_request("list /tmp", gateway, [list_directory_tool], True))
    assert route is Route.CONVERSATION
