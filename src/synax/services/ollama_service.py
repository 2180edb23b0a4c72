"""Lifecycle of the local ``ollama serve`` process."""

import logging
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import (
    IO,
    List,
)

logger = logging.getLogger(__name__)


class OllamaService:
    """
    Owns the inference backend process.

    If a backend is already running it is reused and left alone on :meth:`stop` (unless
    ``stop_external`` is set).  Otherwise ``ollama serve`` is spawned with its output appended to a
    timestamped file under *log_dir*.
    """

    def __init__(
        self,
        log_dir: str | Path = "logs",
        command: List[str] | None = None,
        stop_external: bool = False,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.command = command or ["ollama", "serve"]
        self.stop_external = stop_external
        self.process: subprocess.Popen | None = None
        self.log_file: Path | None = None
        self._log_handle: IO[bytes] | None = None
        self._external = False

    @property
    def running(self) -> bool:
        if self.process is not None:
            return self.process.poll() is None
        return self._external

    def _already_running(self) -> bool:
        if shutil.which("pgrep") is None:
            return False
        pattern = " ".join(self.command)
        result = subprocess.run(
            ["pgrep", "-f", pattern], capture_output=True, check=False
        )
        return result.returncode == 0

    def start(self) -> None:
        """Ensure the backend is running."""
        if self.running:
            logger.info("Ollama service is already running")
            return

        if self._already_running():
            logger.info("Ollama is already running, reusing it")
            self._external = True
            return

        if shutil.which(self.command[0]) is None:
            raise FileNotFoundError(f"'{self.command[0]}' not found on PATH")

        self.log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
        self.log_file = self.log_dir / f"ollama-{stamp}.log"
        self._log_handle = self.log_file.open("ab")

        logger.info("Starting %s (logs: %s)", " ".join(self.command), self.log_file)
        try:
            self.process = subprocess.Popen(  # pylint: disable=consider-using-with
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=self._log_handle,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError:
            self._close_log()
            raise

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the backend if this service started it."""
        if self.process is not None:
            if self.process.poll() is None:
                logger.info("Stopping Ollama service (pid %d)", self.process.pid)
                self.process.terminate()
                try:
                    self.process.wait(timeout=timeout)
                except subprocess.TimeoutExpired:
                    logger.warning("Ollama did not stop in %.1fs, killing it", timeout)
                    self.process.kill()
                    self.process.wait()
            self.process = None
        elif self._external and self.stop_external and shutil.which("pkill"):
            subprocess.run(["pkill", "-f", " ".join(self.command)], check=False)
            logger.info("Stopped external Ollama service")
        self._external = False
        self._close_log()

    def _close_log(self) -> None:
        if self._log_handle is not None:
            self._log_handle.close()
            self._log_handle = None
