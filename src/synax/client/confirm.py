"""Interactive yes/no gate shown before a shell command runs."""

import logging
import os
import select
import sys
from contextlib import contextmanager
from typing import (
    Callable,
    Iterator,
    List,
    TextIO,
)

from synax.common import (
    AnsiColors,
    colored,
)

logger = logging.getLogger(__name__)

CHOICES: List[str] = ["Execute command", "Cancel"]
AFFIRMATIVE = {"y", "yes", "o", "oui"}

# How long to wait for the rest of an escape sequence before treating ESC as a key press
ESC_TIMEOUT = 0.05

_CTRL_C = "\x03"
_CTRL_D = "\x04"
_ESC = "\x1b"
_PREV_KEYS = {"\x1b[A", "\x1b[D"}  # up / left
_NEXT_KEYS = {"\x1b[B", "\x1b[C"}  # down / right

ReadFn = Callable[[], str]
PendingFn = Callable[[], bool]


@contextmanager
def raw_terminal(fd: int) -> Iterator[None]:
    """Put *fd* in raw mode and always restore the saved attributes on exit."""
    import termios  # pylint: disable=import-outside-toplevel
    import tty  # pylint: disable=import-outside-toplevel

    saved = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)


def _read_key(read: ReadFn, pending: PendingFn) -> str:
    ch = read()
    if ch != _ESC or not pending():
        return ch
    # Arrow keys arrive as ESC [ X in one burst; a lone ESC has nothing behind it
    nxt = read()
    if nxt == "[" and pending():
        return ch + nxt + read()
    return ch + nxt


def _render(stdout: TextIO, command: str, index: int, first: bool) -> None:
    if not first:
        stdout.write(f"\x1b[{len(CHOICES)}A")  # back to the first choice line
    else:
        stdout.write(
            f"{colored(' Authorize execution of:', AnsiColors.YELLOW)}"
            f"{colored(' ' + command, AnsiColors.GRAY)}\r\n"
        )
    for i, choice in enumerate(CHOICES):
        line = colored(f"> {choice}", AnsiColors.BLUE) if i == index else f"  {choice}"
        stdout.write(f"\r\x1b[2K{line}\r\n")
    stdout.flush()


def select_choice(command: str, read: ReadFn, stdout: TextIO, pending: PendingFn) -> bool:
    """
    Arrow-key selector over :data:`CHOICES`; the caller owns the terminal mode.

    *read* returns one character ("" at end of input) and *pending* tells whether more input is
    already waiting.  Enter resolves to the highlighted choice, Ctrl-C / Ctrl-D / Esc resolve to
    cancel, as does any escape sequence that is not an arrow key.
    """
    index = 0
    _render(stdout, command, index, first=True)
    while True:
        key = _read_key(read, pending)
        if key in {_CTRL_C, _CTRL_D, ""}:
            return False
        if key.startswith(_ESC) and key not in _PREV_KEYS | _NEXT_KEYS:
            return False
        if key in {"\r", "\n"}:
            return index == 0
        if key in _PREV_KEYS:
            index = (index - 1) % len(CHOICES)
        elif key in _NEXT_KEYS:
            index = (index + 1) % len(CHOICES)
        else:
            continue
        _render(stdout, command, index, first=False)


def _fd_reader(fd: int) -> ReadFn:
    # Unbuffered so that select() sees exactly what has not been consumed yet
    def read() -> str:
        return os.read(fd, 1).decode("latin-1")

    return read


def _fd_pending(fd: int) -> PendingFn:
    def pending() -> bool:
        ready, _, _ = select.select([fd], [], [], ESC_TIMEOUT)
        return bool(ready)

    return pending


def confirm_execution(
    command: str, stdin: TextIO | None = None, stdout: TextIO | None = None
) -> bool:
    """
    Ask the user whether *command* may run.  Blocks until answered.

    On a TTY a two-choice selector is shown in raw mode; elsewhere a ``(y/N)`` question is asked.
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    if not stdin.isatty():
        stdout.write(colored(f'\nAuthorize execution of "{command}"? (y/N): ', AnsiColors.YELLOW))
        stdout.flush()
        answer = stdin.readline()
        approved = answer.strip().lower() in AFFIRMATIVE
        logger.info("Confirmation for %r: %s", command, approved)
        return approved

    fd = stdin.fileno()
    stdout.write("\n")
    with raw_terminal(fd):
        approved = select_choice(command, _fd_reader(fd), stdout, _fd_pending(fd))
    stdout.write("\n")
    stdout.flush()
    logger.info("Confirmation for %r: %s", command, approved)
    return approved
