"""Launch strategies: how one RunSpec becomes one isolated probing process.

Every launcher gives each run its own process (or container), so runs never
share resolver state and the orchestrator may run several concurrently.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
import tempfile
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from dnsprobe.context import SECURITY_ENTRY_PREFIX, SECURITY_FILE_ENV, edit_security_properties
from dnsprobe.errors import LaunchError
from dnsprobe.matrix.methods import PROBE_ENV_KEYS, LaunchPlan
from dnsprobe.matrix.spec import RunSpec

logger = logging.getLogger(__name__)

PROBE_MODULE = "dnsprobe.probe.cli"


@dataclass
class LaunchOutcome:
    """Raw result of one child execution.

    Attributes:
        output: Captured stdout and stderr, interleaved
        exit_code: Exit status, None if the child was killed
        timed_out: Whether the run hit its timeout
        elapsed_s: Wall time
    """

    output: str
    exit_code: int | None
    timed_out: bool = False
    elapsed_s: float = 0.0


class Launcher(ABC):
    """Strategy for executing one run in isolation."""

    name: str = "launcher"

    @abstractmethod
    def launch(self, spec: RunSpec, plan: LaunchPlan, timeout: float) -> LaunchOutcome:
        """Execute ``spec`` and block until it exits or ``timeout`` elapses.

        Raises:
            LaunchError: If the child could not be started at all.
        """


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _run(cmd: list[str], env: dict[str, str], timeout: float) -> LaunchOutcome:
    logger.debug(f"Running: {shlex.join(cmd)}")
    start = time.monotonic()
    try:
        proc = subprocess.run(
            cmd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        return LaunchOutcome(
            output=_decode(e.output),
            exit_code=None,
            timed_out=True,
            elapsed_s=time.monotonic() - start,
        )
    except OSError as e:
        raise LaunchError(f"Could not start {cmd[0]}: {e}") from e
    return LaunchOutcome(
        output=proc.stdout or "",
        exit_code=proc.returncode,
        elapsed_s=time.monotonic() - start,
    )


class LocalProcessLauncher(Launcher):
    """Run the probe as a child of the current interpreter.

    The variant is informational only; every run uses this interpreter. The
    file-edit method gets its own copy of the security properties file
    (the base file is ``base_security_file`` or the one named by
    DNS_SECURITY_PROPERTIES_FILE, if any) in a per-run temp directory.
    """

    name = "local"

    def __init__(
        self,
        python: str | None = None,
        base_security_file: str | None = None,
        extra_env: dict[str, str] | None = None,
    ):
        self.python = python or sys.executable
        self.base_security_file = base_security_file or os.environ.get(SECURITY_FILE_ENV)
        self.extra_env = dict(extra_env or {})

    def _env(self, plan: LaunchPlan) -> dict[str, str]:
        env = {k: v for k, v in os.environ.items() if k not in PROBE_ENV_KEYS}
        if self.base_security_file:
            env[SECURITY_FILE_ENV] = self.base_security_file
        # Make the package importable without installation
        root = str(Path(__file__).resolve().parents[2])
        env["PYTHONPATH"] = os.pathsep.join(p for p in (root, env.get("PYTHONPATH")) if p)
        env.update(self.extra_env)
        env.update(plan.env)
        return env

    def _write_security_file(self, directory: str, updates: dict[str, str]) -> str:
        base_text = ""
        if self.base_security_file:
            try:
                base_text = Path(self.base_security_file).read_text(encoding="utf-8")
            except OSError as e:
                raise LaunchError(f"Cannot read security file {self.base_security_file}: {e}") from e
        path = Path(directory) / "security.properties"
        path.write_text(edit_security_properties(base_text, updates), encoding="utf-8")
        return str(path)

    def launch(self, spec: RunSpec, plan: LaunchPlan, timeout: float) -> LaunchOutcome:
        cmd = [self.python, "-m", PROBE_MODULE, *plan.define_args()]
        env = self._env(plan)
        if not plan.security_file_updates:
            return _run(cmd, env, timeout)

        with tempfile.TemporaryDirectory(prefix=f"dnsprobe-{spec.name}-") as tmp:
            env[SECURITY_FILE_ENV] = self._write_security_file(tmp, plan.security_file_updates)
            return _run(cmd, env, timeout)


class DockerLauncher(Launcher):
    """Run the probe in a fresh container of ``<image_prefix>:<variant>``.

    The image must contain the probing program; ``probe_command`` is what
    starts it inside the container. For the file-edit method a shell wrapper
    rewrites the container's security properties file before exec'ing the
    probe.
    """

    name = "docker"

    def __init__(
        self,
        image_prefix: str = "dns-test",
        probe_command: list[str] | None = None,
        security_file: str = "/etc/dnsprobe/security.properties",
        docker: str = "docker",
    ):
        self.image_prefix = image_prefix
        self.probe_command = list(probe_command or ["python", "-m", PROBE_MODULE])
        self.security_file = security_file
        self.docker = docker

    def image(self, variant: str) -> str:
        return f"{self.image_prefix}:{variant}"

    def wrapper_script(self, updates: dict[str, str]) -> str:
        """Shell script that strips prior cache entries and appends ``updates``."""
        lines = [
            f'f="${{{SECURITY_FILE_ENV}:-{self.security_file}}}"',
            'mkdir -p "$(dirname "$f")" && touch "$f"',
            f'grep -v "^{SECURITY_ENTRY_PREFIX}" "$f" > "$f.tmp" || true',
            'mv "$f.tmp" "$f"',
        ]
        for key, value in updates.items():
            lines.append(f'echo {shlex.quote(f"{key}={value}")} >> "$f"')
        lines.append('echo "Security properties file $f updated"')
        lines.append('exec "$@"')
        return "\n".join(lines)

    def build_command(self, spec: RunSpec, plan: LaunchPlan, container_name: str) -> list[str]:
        cmd = [self.docker, "run", "--rm", "--name", container_name]
        env = dict(plan.env)
        if plan.security_file_updates:
            env.setdefault(SECURITY_FILE_ENV, self.security_file)
        for key, value in env.items():
            cmd.extend(["-e", f"{key}={value}"])
        cmd.append(self.image(spec.variant))

        probe = [*self.probe_command, *plan.define_args()]
        if plan.security_file_updates:
            cmd.extend(["sh", "-c", self.wrapper_script(plan.security_file_updates), "sh", *probe])
        else:
            cmd.extend(probe)
        return cmd

    def _kill(self, container_name: str) -> None:
        try:
            subprocess.run(
                [self.docker, "kill", container_name],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=30,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Could not kill container {container_name}: {e}")

    def launch(self, spec: RunSpec, plan: LaunchPlan, timeout: float) -> LaunchOutcome:
        container_name = f"dnsprobe-{spec.name}-{uuid.uuid4().hex[:8]}"
        outcome = _run(self.build_command(spec, plan, container_name), dict(os.environ), timeout)
        if outcome.timed_out:
            self._kill(container_name)
        return outcome


RunFunction = Callable[[RunSpec, LaunchPlan], "str | LaunchOutcome"]


class CallableLauncher(Launcher):
    """Run an in-process function per spec instead of a child process.

    The function returns either the console output (taken as exit 0) or a
    full LaunchOutcome. Meant for tests and dry runs.
    """

    name = "callable"

    def __init__(self, fn: RunFunction):
        self.fn = fn

    def launch(self, spec: RunSpec, plan: LaunchPlan, timeout: float) -> LaunchOutcome:
        start = time.monotonic()
        try:
            result = self.fn(spec, plan)
        except LaunchError:
            raise
        except Exception as e:
            raise LaunchError(f"{type(e).__name__}: {e}") from e
        if isinstance(result, LaunchOutcome):
            return result
        return LaunchOutcome(output=result, exit_code=0, elapsed_s=time.monotonic() - start)
