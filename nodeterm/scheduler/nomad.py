"""Nomad scheduler adapter that shells out to the ``nomad`` CLI.

There is no timeout on the CLI calls: a hung ``nomad`` process stalls the
drain loop until it returns.
"""

from __future__ import annotations

import asyncio
import json

import structlog

from nodeterm.models.nodes import SchedulerNode

_log = structlog.get_logger(component="scheduler.nomad")


class SchedulerError(Exception):
    """Raised when the scheduler CLI fails or returns unusable output."""


class NomadCLI:
    """Lists and drains Nomad client nodes.

    Args:
        binary: Path or name of the ``nomad`` executable.
    """

    def __init__(self, binary: str = "nomad") -> None:
        self._binary = binary

    async def list_nodes(self) -> list[SchedulerNode]:
        output = await self._run("node", "status", "-json")
        try:
            raw = json.loads(output)
        except json.JSONDecodeError as exc:
            raise SchedulerError(f"Unparsable node list from {self._binary}: {exc}") from exc
        if not isinstance(raw, list) or not raw:
            raise SchedulerError("No nomad nodes found")
        return [SchedulerNode.from_dict(n) for n in raw if isinstance(n, dict)]

    async def enable_drain(self, node_id: str) -> None:
        await self._run("node", "drain", "-enable", node_id)
        _log.info("nomad_drain_enabled", node_id=node_id)

    async def _run(self, *args: str) -> str:
        proc = await asyncio.create_subprocess_exec(
            self._binary,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise SchedulerError(
                f"{self._binary} {' '.join(args)} exited with {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()[:200]}"
            )
        return stdout.decode()
