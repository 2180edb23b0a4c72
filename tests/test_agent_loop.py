"""Tests for the dispatch loop and its retry state machine."""

import asyncio
import io
from typing import List

import pytest

from conftest import FakeOllama, FakeToolServer
from synax.agent.agent_loop import (
    DispatchLoop,
    TurnOutcome,
)
from synax.agent.control import ControlAgent
from synax.agent.conversation import ConversationAgent
from synax.agent.planner import PlanningAgent
from synax.agent.tool_executor import ToolAgent
from synax.agent.tool_selector import ToolSelectorAgent
from synax.core.schema import (
    ContentItem,
    ToolResponse,
)
from synax.tools import ToolDirectory

LIST_CALL = '{"tool":"list-directory","arguments":{"path":"/tmp"}}'
SELECT_LIST = '{"selected_tool":"list-directory","confidence":0.9,"reason":"listing"}'


def _loop(make_gateway, backend, directory, transcript, confirm_answers: List[bool] | None = None,
          planner: bool = False, connected: bool = True, history_limit=None) -> DispatchLoop:
    gateway = make_gateway(backend)
    answers = list(confirm_answers or [True])
    return DispatchLoop(
        gateway=gateway,
        directory=directory,
        transcript=transcript,
        conversation=ConversationAgent(gateway, transcript, io.StringIO()),
        tool_agent=ToolAgent(gateway, directory, transcript, lambda cmd: answers.pop(0)),
        selector=ToolSelectorAgent(gateway),
        control=ControlAgent(gateway),
        planner=PlanningAgent(gateway, "execute-shell-command") if planner else None,
        is_connected=lambda: connected,
        max_attempts=5,
        history_limit=history_limit,
    )


def _failing_directory(list_directory_tool) -> tuple:
    server = FakeToolServer(
        "files",
        {"list-directory": ToolResponse(content=[ContentItem(error="permission denied")])},
    )
    directory = ToolDirectory()
    directory.register(list_directory_tool, server)
    return directory, server


def test_list_files_end_to_end(make_gateway, directory, transcript, server) -> None:
    """Route TOOL, select list-directory, execute, record the output."""

    backend = FakeOllama(routing="TOOL", selection=SELECT_LIST, execution=LIST_CALL)
    outcome = asyncio.run(_loop(make_gateway, backend, directory, transcript).handle_turn("list files in /tmp"))

    assert outcome is TurnOutcome.SUCCESS
    assert server.calls == [("list-directory", {"path": "/tmp"})]
    assert "Tool output: a.txt" in transcript.render()
    assert backend.calls("control") == []


def test_always_failing_tool_exhausts_after_five_attempts(make_gateway, transcript, list_directory_tool) -> None:
    """Exactly 5 failed attempts and 4 repairs, then the turn ends quietly."""

    directory, server = _failing_directory(list_directory_tool)
    backend = FakeOllama(
        routing="TOOL", selection=SELECT_LIST, execution=LIST_CALL, control="list files in /tmp please"
    )
    outcome = asyncio.run(_loop(make_gateway, backend, directory, transcript).handle_turn("list files in /tmp"))

    assert outcome is TurnOutcome.EXHAUSTED
    assert len(server.calls) == 5
    assert len(backend.calls("execution")) == 5
    assert len(backend.calls("control")) == 4
    assert len(backend.calls("selection")) == 1


def test_repaired_prompt_is_used_for_the_next_attempt(make_gateway, directory, transcript, server) -> None:
    """A parse failure triggers a repair whose output feeds the retry."""

    backend = FakeOllama(
        routing="TOOL",
        selection="garbage",
        execution=["", LIST_CALL],
        control="REPAIRED: list the files of /tmp",
    )
    outcome = asyncio.run(_loop(make_gateway, backend, directory, transcript).handle_turn("ls /tmp"))

    assert outcome is TurnOutcome.SUCCESS
    executions = backend.calls("execution")
    assert len(executions) == 2
    assert "REPAIRED: list the files of /tmp" in executions[1]["prompt"]
    assert len(backend.calls("control")) == 1


def test_cancellation_short_circuits_without_repair(make_gateway, directory, transcript, server) -> None:
    """Declining the shell command ends the turn with no repair and no tool call."""

    backend = FakeOllama(
        routing="TOOL",
        selection='{"selected_tool":"execute-shell-command","confidence":0.8,"reason":"shell"}',
        execution='{"tool":"execute-shell-command","arguments":{"command":"rm -rf ~"}}',
    )
    loop = _loop(make_gateway, backend, directory, transcript, confirm_answers=[False])
    outcome = asyncio.run(loop.handle_turn("wipe my home directory"))

    assert outcome is TurnOutcome.CANCELLED
    assert server.calls == []
    assert backend.calls("control") == []
    assert len(backend.calls("execution")) == 1


def test_conversation_branch(make_gateway, directory, transcript) -> None:
    """A CONVERSATION route streams an answer and records it."""

    backend = FakeOllama(routing="CONVERSATION", conversation="Hello there")
    outcome = asyncio.run(_loop(make_gateway, backend, directory, transcript).handle_turn("hi"))

    assert outcome is TurnOutcome.CONVERSATION
    assert [e.text for e in transcript.entries()] == ["hi", "Hello there"]
    assert backend.calls("execution") == []


def test_disconnected_routes_to_conversation_offline(make_gateway, directory, transcript) -> None:
    """Without tool servers no routing call is made."""

    backend = FakeOllama(conversation="ok")
    loop = _loop(make_gateway, backend, directory, transcript, connected=False)
    assert asyncio.run(loop.handle_turn("list files")) is TurnOutcome.CONVERSATION
    assert backend.calls("routing") == []


def test_history_is_appended_to_downstream_prompts(make_gateway, directory, transcript) -> None:
    """Every prompt after routing carries the formatted transcript."""

    backend = FakeOllama(routing="CONVERSATION", conversation="Sure")
    loop = _loop(make_gateway, backend, directory, transcript)
    asyncio.run(loop.handle_turn("first question"))
    asyncio.run(loop.handle_turn("second question"))

    prompt = backend.calls("conversation")[-1]["prompt"]
    assert "second question\n\nCONVERSATION HISTORY:\n" in prompt
    assert "USER: first question" in prompt
    assert "RESPONSE: Sure" in prompt
    assert "CONVERSATION HISTORY" not in backend.calls("routing")[-1]["prompt"]


def test_history_limit_bounds_the_block(make_gateway, directory, transcript) -> None:
    """Only the most recent entries are appended when a limit is set."""

    loop = _loop(make_gateway, FakeOllama(), directory, transcript, history_limit=1)
    transcript.add_user_input("old line")
    transcript.add_user_input("new line")
    block = loop.with_history("now")
    assert "new line" in block and "old line" not in block


def test_planner_runs_each_step(make_gateway, directory, transcript, server) -> None:
    """With planning enabled each step goes through the retry loop in order."""

    backend = FakeOllama(
        routing="TOOL",
        selection=SELECT_LIST,
        planning='{"steps":[{"number":1,"step":"tmp","prompt":"list /tmp"},'
        '{"number":2,"step":"var","prompt":"list /var"}]}',
        execution=[LIST_CALL, '{"tool":"list-directory","arguments":{"path":"/var"}}'],
    )
    loop = _loop(make_gateway, backend, directory, transcript, planner=True)
    assert asyncio.run(loop.handle_turn("list /tmp and /var")) is TurnOutcome.SUCCESS
    assert server.calls == [("list-directory", {"path": "/tmp"}), ("list-directory", {"path": "/var"})]


def test_planning_failure_falls_back_to_single_step(make_gateway, directory, transcript, server) -> None:
    """A broken plan does not block execution."""

    backend = FakeOllama(routing="TOOL", selection=SELECT_LIST, planning="nope", execution=LIST_CALL)
    loop = _loop(make_gateway, backend, directory, transcript, planner=True)
    assert asyncio.run(loop.handle_turn("list /tmp")) is TurnOutcome.SUCCESS
    assert len(server.calls) == 1


def test_unexpected_errors_do_not_escape(make_gateway, directory, transcript, monkeypatch) -> None:
    """Anything unforeseen is reported and the turn ends as FAILED."""

    loop = _loop(make_gateway, FakeOllama(routing="TOOL"), directory, transcript)

    async def explode(*args, **kwargs):
        raise ValueError("kaboom")

    monkeypatch.setattr(loop.selector, "select_tool", explode)
    assert asyncio.run(loop.handle_turn("list")) is TurnOutcome.FAILED


@pytest.mark.parametrize("max_attempts, repairs", [(1, 0), (3, 2)])
def test_ceiling_is_configurable(make_gateway, transcript, list_directory_tool, max_attempts, repairs) -> None:
    """The number of repairs is always one less than the ceiling."""

    directory, server = _failing_directory(list_directory_tool)
    backend = FakeOllama(routing="TOOL", selection=SELECT_LIST, execution=LIST_CALL, control="again")
    loop = _loop(make_gateway, backend, directory, transcript)
    loop.max_attempts = max_attempts
    assert asyncio.run(loop.handle_turn("list")) is TurnOutcome.EXHAUSTED
    assert len(server.calls) == max_attempts
    assert len(backend.calls("control")) == repairs


class RecordingSpinner:
    def __init__(self, events: List[str]) -> None:
        self.events = events

    def __enter__(self) -> "RecordingSpinner":
        self.events.append("spin")
        return self

    def __exit__(self, *exc) -> None:
        self.events.append("stop")


def test_selection_and_plan_print_after_the_spinner_stops(
    make_gateway, directory, transcript, server, monkeypatch
) -> None:
    """Console lines about the pick and the plan never interleave with the spinner."""

    events: List[str] = []
    backend = FakeOllama(
        routing="TOOL",
        selection=SELECT_LIST,
        planning='{"steps":[{"number":1,"step":"tmp","prompt":"list /tmp"},'
        '{"number":2,"step":"var","prompt":"list /var"}]}',
        execution=LIST_CALL,
    )
    loop = _loop(make_gateway, backend, directory, transcript, planner=True)
    loop.spinner = RecordingSpinner(events)

    original_announce = loop.selector.announce
    monkeypatch.setattr(loop.selector, "announce", lambda sel: (events.append("announce"), original_announce(sel)))
    monkeypatch.setattr(
        "synax.agent.agent_loop.print_plan", lambda plan: events.append(f"plan:{len(plan.steps)}")
    )

    assert asyncio.run(loop.handle_turn("list /tmp and /var")) is TurnOutcome.SUCCESS
    # routing, then selection, then planning each run under their own spinner
    assert events[:8] == ["spin", "stop", "spin", "stop", "announce", "spin", "stop", "plan:2"]
