"""Shell execution tool."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from pincer.agent.tools.base import InvocationState, Tool, ToolContext
from pincer.config.schema import ExecToolConfig

if TYPE_CHECKING:
    from pincer.agent.confirmation import ConfirmationGate


class RunCommandTool(Tool):
    """Run a shell command after a deny-list check and explicit user approval."""

    def __init__(self, gate: ConfirmationGate, config: ExecToolConfig | None = None):
        self.gate = gate
        self.config = config or ExecToolConfig()

    @property
    def name(self) -> str:
        return "run_command"

    @property
    def description(self) -> str:
        return (
            "Execute a shell command or script. The user will be asked to approve before "
            "execution. Use this to run skills you have written, system commands, or other scripts."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute",
                },
            },
            "required": ["command"],
        }

    def blocked_pattern(self, command: str) -> str | None:
        """First deny-list entry contained in the command, if any."""
        for pattern in self.config.deny_list:
            if pattern in command:
                return pattern
        return None

    async def execute(self, ctx: ToolContext, command: str, **kwargs: Any) -> str:
        pattern = self.blocked_pattern(command)
        if pattern:
            logger.warning(f"Blocked command '{command}' (pattern '{pattern}')")
            return f'Command denied: matches blocked pattern "{pattern}".'

        invocation_id = ctx.invocation.id if ctx.invocation else os.urandom(8).hex()
        approved = await self.gate.request_approval(invocation_id, command, ctx)
        if not approved:
            return "User denied the command execution."

        if ctx.invocation:
            ctx.invocation.state = InvocationState.EXECUTING
        return await self._run(command)

    async def _run(self, command: str) -> str:
        cwd = self.config.working_dir or str(Path.home())
        limit = self.config.max_output_bytes
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=os.path.expanduser(cwd),
        )

        try:
            (stdout, out_cut), (stderr, err_cut), _ = await asyncio.wait_for(
                asyncio.gather(
                    _read_capped(process.stdout, limit),
                    _read_capped(process.stderr, limit),
                    process.wait(),
                ),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"Command timed out after {self.config.timeout}s: {command}")
            return f"Command timed out after {self.config.timeout} seconds."

        out = stdout.decode("utf-8", errors="replace").strip()
        err = stderr.decode("utf-8", errors="replace").strip()

        if process.returncode != 0:
            result = f"Error (exit {process.returncode}): {err or out or 'command failed'}"
        else:
            result = out or "(no output)"
            if err:
                result += f"\nStderr: {err}"

        truncated = out_cut or err_cut
        encoded = result.encode("utf-8")
        if len(encoded) > limit:
            truncated = True
            # A multi-byte character split by the cut is dropped.
            result = encoded[:limit].decode("utf-8", errors="ignore")
        if truncated:
            result += "\n... (output truncated)"
        return result


async def _read_capped(stream: asyncio.StreamReader, limit: int) -> tuple[bytes, bool]:
    """Keep at most `limit` bytes of a pipe, draining the rest so the child never blocks."""
    kept = bytearray()
    overflow = False
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            break
        room = limit - len(kept)
        if len(chunk) > room:
            overflow = True
            chunk = chunk[:max(room, 0)]
        kept += chunk
    return bytes(kept), overflow
