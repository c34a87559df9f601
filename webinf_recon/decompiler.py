"""
decompiler.py
-------------

Turns the bytes of a ``.class`` file back into Java source.

The external decompiler (Procyon by default) works on files, so the artifact
is written to a temporary file that only lives for the duration of one
``decompile`` call.  Procyon is asked for explicit imports and explicit type
arguments: the import scan in :mod:`webinf_recon.extractor` depends on every
referenced class showing up as its own ``import`` line.
"""

from __future__ import annotations

import asyncio
import os
import shlex
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

from webinf_recon.errors import DecompileError

DEFAULT_DECOMPILER = "procyon"
DECOMPILE_TIMEOUT = 60
PROCYON_OPTIONS = ["--explicit-imports", "--explicit-type-arguments"]
PROCYON_ERROR_MARKER = "!!! ERROR"


@contextmanager
def transient_artifact(data: bytes, directory: Optional[Path] = None) -> Iterator[Path]:
    """Write ``data`` to a temporary ``.class`` file and remove it on exit."""
    fd, name = tempfile.mkstemp(prefix="webinf-", suffix=".class", dir=directory)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        yield path
    finally:
        path.unlink(missing_ok=True)


class Decompiler:
    """A decompiler that reads a class file from disk and returns source text."""

    name = "decompiler"

    def is_available(self) -> bool:
        return True

    async def decompile_file(self, path: Path) -> str:
        raise NotImplementedError


class ProcyonDecompiler(Decompiler):
    """Runs the Procyon command line decompiler in a subprocess.

    ``command`` is the launcher, e.g. ``procyon`` (Debian/Kali wrapper) or
    ``java -jar /opt/procyon-decompiler.jar``.
    """

    name = "procyon"

    def __init__(self, command: Union[str, Sequence[str]] = DEFAULT_DECOMPILER, timeout: float = DECOMPILE_TIMEOUT) -> None:
        self.command: List[str] = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("decompiler command is empty")
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.command[0]) is not None

    def build_command(self, path: Path) -> List[str]:
        return [*self.command, *PROCYON_OPTIONS, str(path)]

    async def decompile_file(self, path: Path) -> str:
        cmd = self.build_command(path)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except OSError as exc:
            raise DecompileError(f"cannot run {cmd[0]}: {exc}") from exc
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise DecompileError(f"{self.name} timed out after {self.timeout}s") from None
        finally:
            # also reached on cancellation
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()

        out = stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            err = stderr.decode("utf-8", errors="replace").strip()
            raise DecompileError(f"{self.name} exited with status {proc.returncode}: {err[:200]}")
        # Procyon reports unreadable classes on stdout and still exits 0
        if not out.strip() or any(line.startswith(PROCYON_ERROR_MARKER) for line in out.splitlines()):
            raise DecompileError(f"{self.name} produced no source: {out.strip()[:200]}")
        return out


class DecompileAdapter:
    """Hands artifact bytes to a :class:`Decompiler` through a temporary file."""

    def __init__(self, decompiler: Decompiler, workdir: Optional[Path] = None) -> None:
        self.decompiler = decompiler
        self.workdir = workdir

    async def decompile(self, artifact: bytes) -> str:
        if not artifact:
            raise DecompileError("empty artifact")
        with transient_artifact(artifact, self.workdir) as path:
            return await self.decompiler.decompile_file(path)
