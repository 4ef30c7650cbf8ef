"""Synchronous external command execution."""

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from cwharness.errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Command:
    """An external program invocation.

    Builder methods return a new ``Command``; each terminal method
    (``output``, ``read``, ``run``, ``run_quiet``) spawns exactly one process.
    """

    argv: tuple[str, ...]
    cwd: Path | None = None
    extra_env: Mapping[str, str] = field(default_factory=dict)
    input: str | None = None

    @classmethod
    def of(cls, *argv: str | os.PathLike) -> "Command":
        return cls(argv=tuple(str(a) for a in argv))

    def arg(self, value: str | os.PathLike) -> "Command":
        return replace(self, argv=(*self.argv, str(value)))

    def args(self, *values: str | os.PathLike) -> "Command":
        return replace(self, argv=(*self.argv, *(str(v) for v in values)))

    def env(self, **values: str | os.PathLike) -> "Command":
        return replace(self, extra_env={**self.extra_env, **{k: str(v) for k, v in values.items()}})

    def envs(self, values: Mapping[str, str | os.PathLike]) -> "Command":
        return self.env(**values)

    def stdin(self, text: str) -> "Command":
        return replace(self, input=text)

    def in_dir(self, path: str | os.PathLike) -> "Command":
        return replace(self, cwd=Path(path))

    def __str__(self) -> str:
        return shlex.join(self.argv)

    def _environ(self) -> dict[str, str] | None:
        if not self.extra_env:
            return None
        return {**os.environ, **self.extra_env}

    def _spawn(self, **kwargs) -> subprocess.CompletedProcess:
        logger.debug("$ %s", self)
        try:
            return subprocess.run(
                list(self.argv),
                cwd=str(self.cwd) if self.cwd else None,
                env=self._environ(),
                input=self.input,
                text=True,
                check=False,
                **kwargs,
            )
        except OSError as e:
            raise CommandError(self.argv, reason=str(e)) from e

    def output(self) -> subprocess.CompletedProcess:
        """Run capturing stdout/stderr; the exit status is not checked."""
        return self._spawn(capture_output=True)

    def read(self) -> str:
        """Run capturing output and return stdout; non-zero exit raises."""
        result = self.output()
        if result.returncode != 0:
            raise CommandError(self.argv, result.returncode, result.stderr or "")
        return (result.stdout or "").rstrip()

    def run(self) -> None:
        """Run with inherited stdio; non-zero exit raises."""
        result = self._spawn()
        if result.returncode != 0:
            raise CommandError(self.argv, result.returncode)

    def status(self) -> int:
        """Run with inherited stdio and return the exit status unchecked."""
        return self._spawn().returncode

    def run_quiet(self) -> None:
        """Run discarding output; non-zero exit raises."""
        result = self._spawn(stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
        if result.returncode != 0:
            raise CommandError(self.argv, result.returncode, result.stderr or "")
