"""Lifecycle handles for started local processes and containers.

A handle owns whatever was started and stops it on ``release``. Handles are
context managers, so ``with network.start_local() as handle:`` scopes the
lifetime of the processes to the block.
"""

import logging
import os
import signal
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from cwharness.config import settings
from cwharness.errors import CommandError, HarnessError
from cwharness.shell import Command

logger = logging.getLogger(__name__)


@contextmanager
def sigint_sets(stop: threading.Event) -> Iterator[None]:
    """Turn SIGINT into ``stop.set()`` for the duration of the block."""
    previous = signal.signal(signal.SIGINT, lambda signum, frame: stop.set())
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def follow_file(
    path: Path,
    stop: threading.Event | None = None,
    interval: float = 0.25,
    out: IO[str] | None = None,
) -> None:
    """Stream ``path`` to ``out`` as it grows until ``stop`` is set.

    Without ``stop`` the function follows until SIGINT.
    """
    out = out if out is not None else sys.stderr
    if stop is None:
        stop = threading.Event()
        with sigint_sets(stop):
            follow_file(path, stop, interval, out)
        return

    while not path.exists():
        if stop.wait(interval):
            return

    with path.open("r", errors="replace") as f:
        while True:
            line = f.readline()
            if line:
                out.write(line)
                out.flush()
                continue
            if stop.wait(interval):
                return


class LifecycleHandle(ABC):
    """Something started that must be stopped."""

    _released = False

    @abstractmethod
    def foreground(self) -> None:
        """Block streaming output until interrupted."""
        ...

    def release(self) -> None:
        """Stop what this handle owns; calling it again does nothing.

        Failures are logged, never raised.
        """
        if self._released:
            return
        self._released = True
        try:
            self._release()
        except (HarnessError, OSError) as e:
            logger.error("failed to release %r: %s", self, e)

    @abstractmethod
    def _release(self) -> None:
        ...

    @property
    def released(self) -> bool:
        return self._released

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()


class ProcessHandle(LifecycleHandle):
    """A child process in its own session with output in a log file."""

    def __init__(self, process: subprocess.Popen, log_path: Path, log_file: IO, name: str):
        self.process = process
        self.log_path = log_path
        self._log_file = log_file
        self.name = name

    @classmethod
    def spawn(
        cls,
        command: Command,
        log_path: Path,
        append: bool = False,
        name: str | None = None,
    ) -> "ProcessHandle":
        """Start ``command`` writing stdout and stderr to ``log_path``.

        Args:
            command: Program, arguments, working directory and env overrides.
            log_path: Log file, overwritten unless ``append`` is set.
            append: Append to an existing log instead of truncating it.
            name: Label used in log messages (defaults to the program name).
        """
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_file = log_path.open("a" if append else "w")
        env = {**os.environ, **command.extra_env} if command.extra_env else None
        name = name or Path(command.argv[0]).name

        logger.debug("$ %s > %s", command, log_path)
        try:
            process = subprocess.Popen(
                list(command.argv),
                cwd=str(command.cwd) if command.cwd else None,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            log_file.close()
            raise CommandError(command.argv, reason=str(e)) from e

        logger.info("started %s (pid %d), logging to %s", name, process.pid, log_path)
        return cls(process, log_path, log_file, name)

    def __repr__(self) -> str:
        return f"ProcessHandle({self.name!r}, pid={self.process.pid})"

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.process.poll() is None

    def wait(self) -> None:
        """Block until the process exits; a non-zero status raises ``CommandError``."""
        returncode = self.process.wait()
        self._log_file.close()
        self._released = True
        if returncode != 0:
            raise CommandError(self.process.args, returncode, f"see {self.log_path}")

    def foreground(self) -> None:
        stop = threading.Event()

        def watch() -> None:
            self.process.wait()
            stop.set()

        threading.Thread(target=watch, name=f"watch-{self.name}", daemon=True).start()
        with sigint_sets(stop):
            follow_file(self.log_path, stop)

    def _signal_group(self, signum: int) -> bool:
        try:
            os.killpg(self.process.pid, signum)
        except ProcessLookupError:
            return False
        return True

    def _release(self) -> None:
        try:
            # The group can outlive its leader
            if self._signal_group(signal.SIGTERM):
                try:
                    self.process.wait(timeout=settings.kill_grace_period)
                except subprocess.TimeoutExpired:
                    logger.warning("%s did not exit after SIGTERM, killing", self.name)
                    self._signal_group(signal.SIGKILL)
                    self.process.wait()
            logger.info("stopped %s", self.name)
        finally:
            self._log_file.close()


class ContainerHandle(LifecycleHandle):
    """A detached docker container, stopped on release."""

    def __init__(self, container: str, docker: str | None = None):
        self.container = container
        self.docker = docker or settings.docker_bin

    def __repr__(self) -> str:
        return f"ContainerHandle({self.container!r})"

    def foreground(self) -> None:
        # docker receives SIGINT from the terminal and exits; we just return
        previous = signal.signal(signal.SIGINT, lambda signum, frame: None)
        try:
            Command.of(self.docker, "logs", "-f", self.container).status()
        finally:
            signal.signal(signal.SIGINT, previous)

    def _release(self) -> None:
        Command.of(self.docker, "stop", self.container).run_quiet()
        logger.info("stopped container %s", self.container)


class CompositeHandle(LifecycleHandle):
    """Several handles released together in reverse start order."""

    def __init__(self, handles: Sequence[LifecycleHandle], primary_log: Path):
        self.handles = list(handles)
        self.primary_log = primary_log

    def foreground(self) -> None:
        follow_file(self.primary_log)

    def _release(self) -> None:
        for handle in reversed(self.handles):
            handle.release()
