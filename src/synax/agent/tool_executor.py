"""Asks the model for a tool call, confirms dangerous ones and dispatches it to its server."""

import logging
from typing import (
    Any,
    Callable,
    Dict,
    List,
)

from synax.common import (
    AnsiColors,
    colored_print,
)
from synax.core.schema import (
    ExecutionResult,
    ToolResponse,
    ToolSpec,
)
from synax.llm.gateway import (
    EXECUTION_OPTIONS,
    InferenceGateway,
    TransportError,
)
from synax.memory.transcript import Transcript
from synax.tools import (
    ToolDirectory,
    format_tool_catalogue,
)
from synax.tools.tool_call_parser import (
    ToolCallParseError,
    parse_tool_call,
)

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or its server reports an error."""

    def __init__(self, message: str, tool_name: str | None = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ToolAgent:
    """
    Turns a prompt into one tool invocation.

    Parameters
    ----------
    gateway:
        Inference backend used to obtain the tool call.
    directory:
        Tools and the transports serving them.
    transcript:
        Receives tool output, direct answers and failures.
    confirm:
        Blocking yes/no gate called before running the shell tool.
    shell_tool_name:
        Name of the tool whose ``command`` argument requires confirmation.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        directory: ToolDirectory,
        transcript: Transcript,
        confirm: ConfirmFn,
        shell_tool_name: str = "execute-shell-command",
    ) -> None:
        self.gateway = gateway
        self.directory = directory
        self.transcript = transcript
        self.confirm = confirm
        self.shell_tool_name = shell_tool_name

    # ------------------------------------------------------------------ #
    # Prompt
    # ------------------------------------------------------------------ #
    def build_prompt(
        self, tools: List[ToolSpec], prompt: str, preselected_tool: str | None = None
    ) -> str:
        hint = ""
        if preselected_tool:
            hint = f"- The tool '{preselected_tool}' looks like the best match; prefer it if it fits.\n"
        return f"""\
** TOOLS:**
You have access to the following tools:
{format_tool_catalogue(tools)}

** RULES:**
- User want to use tools to answer his request.
- Translate in english the user request to find the best tool.
- Try to determine which tool is the best to use.
{hint}- If user send a command in the prompt, do not change it.
- If the user doesn't provide all required arguments, you must generate them intelligently:
  * For paths: if the user provides an incomplete path, rebuild the full correct path based on \
the context
  * For text fields: Generate a relevant placeholder value
  * For booleans: Use a sensible default (true/false)
  * For numbers: Use a reasonable default value
- Always include all required parameters, even if you need to generate them
- Response ONLY One JSON object, without any additional text.

You MUST respond with only one JSON object in the following format without any additional text:
** RESPONSE FORMAT:**
{{
    "tool": "the_name_of_the_tool_to_use",
    "arguments": {{
        "param1": "value1",
        "param2": "value2"
    }}
}}

{prompt}
"""

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    async def execute(
        self, tools: List[ToolSpec], prompt: str, preselected_tool: str | None = None
    ) -> ExecutionResult:
        """
        Run one attempt.

        Returns
        -------
        ExecutionResult
            ``success`` after a tool ran or the model answered directly, ``cancelled`` when the
            user declined the shell command.

        Raises
        ------
        ToolCallParseError
            If the model returned neither a tool call nor any text.
        ToolExecutionError
            If the backend or the tool server failed.
        """
        try:
            answer = await self.gateway.generate(
                self.build_prompt(tools, prompt, preselected_tool), EXECUTION_OPTIONS
            )
        except TransportError as exc:
            raise ToolExecutionError(str(exc)) from exc

        try:
            call = parse_tool_call(answer)
        except ToolCallParseError as exc:
            if not answer.strip():
                raise ToolCallParseError(
                    f"Empty answer from the model for prompt:\n{prompt}\nRaw answer: {answer!r}"
                ) from exc
            # The model answered instead of acting.
            logger.info("No tool call in answer (%s); treating it as a direct reply", exc)
            colored_print(answer, AnsiColors.BLUE)
            self.transcript.add_response(answer)
            return ExecutionResult(success=True, output=answer)

        logger.info("Tool call requested: %s %s", call.tool, call.arguments)

        command = call.arguments.get("command")
        if call.tool == self.shell_tool_name and command:
            if not self.confirm(str(command)):
                colored_print("\nCancelled by user\n", AnsiColors.YELLOW)
                logger.info("Shell command declined: %s", command)
                return ExecutionResult(cancelled=True, tool_name=call.tool)

        output = await self.call_tool(call.tool, call.arguments)
        return ExecutionResult(success=True, tool_name=call.tool, output=output)

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> str | None:
        """Dispatch to the owning transport and return the first text item, if any."""
        owner = self.directory.owner_for(tool_name)
        try:
            if owner is None:
                raise ToolExecutionError(f"Tool '{tool_name}' has no server.", tool_name)
            logger.debug("Calling tool '%s' on '%s' with %s", tool_name, owner.name, arguments)
            try:
                response = await owner.call_tool(tool_name, arguments)
            except ToolExecutionError:
                raise
            except Exception as exc:  # pylint: disable=broad-except
                raise ToolExecutionError(
                    f"Tool '{tool_name}' raised an error: {exc}", tool_name
                ) from exc
            return self._handle_response(tool_name, response)
        except ToolExecutionError as exc:
            self.transcript.add_response(f"Error executing tool {tool_name}: {exc}")
            raise

    def _handle_response(self, tool_name: str, response: ToolResponse) -> str | None:
        for item in response.content:
            if item.error:
                raise ToolExecutionError(item.error, tool_name)
            if response.is_error:
                raise ToolExecutionError(item.text or f"Tool '{tool_name}' failed.", tool_name)
            if item.type == "text" and item.text is not None:
                colored_print(f"\n Tool: {tool_name}", AnsiColors.BLUE)
                colored_print(f"{item.text}\n", AnsiColors.GREEN)
                self.transcript.add_response(f"Tool output: {item.text}")
                return item.text
        if response.is_error:
            raise ToolExecutionError(f"Tool '{tool_name}' failed.", tool_name)
        return None
