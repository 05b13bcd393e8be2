"""
Shell command adapter — execute host commands.

Everything the recipe does to the OS that isn't a plain file or HTTP
operation goes through here: useradd, ssh-keygen, package managers,
service control, socket table inspection.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time

from jenkins_provision.adapters.base import Adapter, ExecutionContext
from jenkins_provision.core.models.action import Receipt

logger = logging.getLogger(__name__)


class ShellCommandAdapter(Adapter):
    """Execute commands and capture output.

    Action params:
        command (str | list[str]): A shell string, or an argv list
            which is run without a shell.
        timeout (int): Timeout in seconds (default: 600).
        env (dict): Extra environment variables.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.action.params.get("command")
        if not command:
            return False, "Missing required param: 'command'"
        if not isinstance(command, (str, list)):
            return False, f"Param 'command' must be str or list, got {type(command).__name__}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        command = context.action.params["command"]
        timeout = context.action.params.get("timeout", 600)
        env = context.action.params.get("env")
        use_shell = isinstance(command, str)
        display = command if use_shell else shlex.join(command)

        logger.debug("Executing: %s", display)
        start = time.monotonic()

        try:
            result = subprocess.run(
                command,
                shell=use_shell,
                cwd=context.working_dir,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=_merged_env(env),
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": display, "timeout": timeout},
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": display},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout.strip()
        stderr = result.stderr.strip()

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=output,
                changed=True,
                duration_ms=elapsed_ms,
                metadata={
                    "command": display,
                    "return_code": result.returncode,
                    "stderr": stderr,
                },
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or f"Command exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={
                "command": display,
                "return_code": result.returncode,
                "stdout": output,
            },
        )


def _merged_env(extra: dict[str, str] | None) -> dict[str, str] | None:
    if not extra:
        return None
    env = os.environ.copy()
    env.update(extra)
    return env
