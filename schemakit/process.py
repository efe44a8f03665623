"""Run a command and talk to it over its standard input and output."""

from __future__ import annotations

import subprocess
from typing import Optional, Sequence


class CommandPipe:
    """A byte stream to a child process's stdin and from its stdout.

    Closing shuts down the child politely: stdin is closed first, then the
    child is terminated and finally killed if it does not exit in time.
    """

    def __init__(self, args: Sequence[str], timeout: float = 5.0) -> None:
        self.args = list(args)
        self.timeout = timeout
        self._process: Optional[subprocess.Popen] = None
        self._returncode: Optional[int] = None

    def start(self) -> None:
        """Start the command."""
        if self._process is not None:
            raise RuntimeError("command already started")
        self._process = subprocess.Popen(
            self.args, stdin=subprocess.PIPE, stdout=subprocess.PIPE
        )

    def _running(self) -> subprocess.Popen:
        if self._process is None:
            raise RuntimeError("command not started")
        return self._process

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes from the command's output."""
        return self._running().stdout.read(size)

    def readline(self) -> bytes:
        """Read one line from the command's output."""
        return self._running().stdout.readline()

    def write(self, data: bytes) -> int:
        """Write data to the command's input and flush it."""
        stdin = self._running().stdin
        written = stdin.write(data)
        stdin.flush()
        return written

    def _wait(self) -> bool:
        try:
            self._running().wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            return False
        return True

    def _finish(self) -> int:
        process = self._running()
        if process.stdout is not None:
            process.stdout.close()
        self._returncode = process.returncode
        if process.returncode != 0:
            raise subprocess.CalledProcessError(process.returncode, self.args)
        return process.returncode

    def close(self) -> int:
        """Stop the command and return its exit status.

        Raises CalledProcessError if the command exits unsuccessfully and
        RuntimeError if it cannot be stopped.
        """
        process = self._running()
        if self._returncode is not None:
            return self._returncode
        try:
            if not process.stdin.closed:
                process.stdin.close()
        except OSError as exc:
            raise OSError(f"closing stdin: {exc}") from exc
        if self._wait():
            return self._finish()
        try:
            process.terminate()
        except OSError:
            pass
        else:
            if self._wait():
                return self._finish()
        process.kill()
        if self._wait():
            return self._finish()
        raise RuntimeError("unresponsive subprocess")

    def __enter__(self) -> "CommandPipe":
        if self._process is None:
            self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()