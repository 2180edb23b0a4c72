"""Common console helpers for the project."""

import itertools
import sys
import threading
from enum import Enum
from typing import Any


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    print(f"{color.value}{text}\033[0m", *args, **kwargs)  # ANSI reset at the end


def colored(text: str, color: AnsiColors) -> str:
    """Return *text* wrapped in the escape codes of *color*."""
    return f"{color.value}{text}\033[0m"


class LoadingAnimation:
    """Braille spinner drawn on a daemon thread while the model is thinking."""

    FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

    def __init__(self, interval: float = 0.08, stream: Any = None) -> None:
        self._interval = interval
        self._stream = stream or sys.stdout
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None

    def start(self) -> None:
        if self._thread is not None or not getattr(self._stream, "isatty", lambda: False)():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._stream.write("\x1b[?25l")  # hide cursor
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join()
        self._thread = None
        self._stream.write("\r\x1b[2K\x1b[?25h")  # clear line, show cursor
        self._stream.flush()

    def _spin(self) -> None:
        for frame in itertools.cycle(self.FRAMES):
            if self._stop.is_set():
                break
            self._stream.write(f"\r{colored(frame, AnsiColors.BLUE)}")
            self._stream.flush()
            self._stop.wait(self._interval)

    def __enter__(self) -> "LoadingAnimation":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.stop()
