"""Prescription printing.

A print job runs as its own asyncio task, independent of the form that
started it: fetch the rendered prescription from the backend (or draw it
from the record), write it to a temporary file, give it a moment to settle,
hand it to the printer and then release the file. A failed job only marks
itself failed; the registration it belongs to is never touched.

Finished jobs stay queryable for `PRINT_TASK_TTL` seconds, and at most
`PRINT_TASK_LIMIT` of them are kept.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Set
from uuid import uuid4
from fastapi import HTTPException, status
import asyncio
import enum
import logging
import os
import re
import shutil
import tempfile

from ..clients.base import BackendError
from ..core.config import Settings, settings as default_settings
from ..models.patient import RegisteredPatient
from .prescription import render_prescription

logger = logging.getLogger(__name__)

class PrintStatus(str, enum.Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    RENDERING = "rendering"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"

class PrintError(RuntimeError):
    """Raised when a document cannot be handed to the printer."""

class PrintTaskNotFoundError(HTTPException):
    def __init__(self, task_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Print job '{task_id}' was not found",
        )

class PrintTaskStateError(HTTPException):
    def __init__(self, detail: str = "Only failed print jobs can be retried"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

@dataclass
class PrintTask:
    record_id: str
    title: str
    source: Any = field(repr=False)
    record: Optional[RegisteredPatient] = field(default=None, repr=False)
    id: str = field(default_factory=lambda: uuid4().hex)
    status: PrintStatus = PrintStatus.PENDING
    attempts: int = 0
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    def start(self):
        self.status = PrintStatus.FETCHING
        self.attempts += 1
        self.error = None
        self.finished_at = None

    def complete(self):
        self.status = PrintStatus.COMPLETED
        self.finished_at = datetime.utcnow()
        # Only failed jobs are retried, so a completed one needs no client or record
        self.source = None
        self.record = None

    def fail(self, message: str):
        self.status = PrintStatus.FAILED
        self.error = message
        self.finished_at = datetime.utcnow()

    @property
    def done(self) -> bool:
        return self.status in (PrintStatus.COMPLETED, PrintStatus.FAILED)

class RenderSurface:
    """A prescription written to a temporary file for the printer to read."""

    def __init__(self, path: Path):
        self.path = path

    @classmethod
    def create(cls, document: bytes, suffix: str = ".pdf") -> "RenderSurface":
        fd, name = tempfile.mkstemp(prefix="prescription_", suffix=suffix)
        with os.fdopen(fd, "wb") as handle:
            handle.write(document)
        return cls(Path(name))

    def release(self):
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

class LpPrinter:
    """Prints through the CUPS `lp` command."""

    def __init__(self, printer_name: Optional[str] = None, command: str = "lp"):
        self.printer_name = printer_name
        self.command = command

    async def print_file(self, path: Path, title: str):
        args = [self.command]
        if self.printer_name:
            args += ["-d", self.printer_name]
        args += ["-t", title, str(path)]

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PrintError(f"Printer command '{self.command}' is not available") from e

        _, stderr = await process.communicate()
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            raise PrintError(message or f"'{self.command}' exited with status {process.returncode}")

class SpoolDirectoryPrinter:
    """Drops documents into a directory watched by a print station."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    async def print_file(self, path: Path, title: str):
        safe_title = re.sub(r"[^A-Za-z0-9_.-]+", "_", title).strip("_") or "prescription"
        target = self.directory / f"{safe_title}_{uuid4().hex[:8]}{path.suffix}"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, path, target)
        except OSError as e:
            raise PrintError(f"Could not spool document to {self.directory}") from e

def build_printer(config: Settings):
    """Create the printer selected by `PRINTER_BACKEND`."""
    if config.PRINTER_BACKEND == "lp":
        return LpPrinter(config.PRINTER_NAME)
    if config.PRINTER_BACKEND == "spool":
        if not config.PRINT_SPOOL_DIR:
            raise ValueError("PRINT_SPOOL_DIR is required for the spool printer backend")
        return SpoolDirectoryPrinter(config.PRINT_SPOOL_DIR)
    raise ValueError(f"Unknown printer backend '{config.PRINTER_BACKEND}'")

class PrintQueue:
    """Runs print jobs in the background and keeps them observable."""

    def __init__(self, printer, config: Optional[Settings] = None):
        self.printer = printer
        self.config = config or default_settings
        self._tasks: Dict[str, PrintTask] = {}
        self._running: Set[asyncio.Task] = set()

    def enqueue(
        self,
        record_id: str,
        source: Any,
        title: str,
        record: Optional[RegisteredPatient] = None,
    ) -> PrintTask:
        """Schedule a print job and return immediately. Needs a running loop."""
        task = PrintTask(record_id=record_id, title=title, source=source, record=record)
        self._tasks[task.id] = task
        self.prune()
        self._schedule(task)
        logger.info(f"Queued print job {task.id} for record {record_id}")
        return task

    def prune(self, now: Optional[datetime] = None) -> int:
        """Forget finished jobs older than `PRINT_TASK_TTL`, then the oldest
        finished jobs beyond `PRINT_TASK_LIMIT`. Running jobs are kept."""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(seconds=self.config.PRINT_TASK_TTL)
        finished = sorted(
            (task for task in self._tasks.values() if task.done),
            key=lambda task: task.finished_at,
        )

        expired = [task for task in finished if task.finished_at <= cutoff]
        excess = len(self._tasks) - len(expired) - self.config.PRINT_TASK_LIMIT
        if excess > 0:
            expired += [task for task in finished if task.finished_at > cutoff][:excess]

        for task in expired:
            del self._tasks[task.id]
        if expired:
            logger.info(f"Dropped {len(expired)} finished print jobs")
        return len(expired)

    def __len__(self):
        return len(self._tasks)

    def get(self, task_id: str) -> PrintTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise PrintTaskNotFoundError(task_id)
        return task

    def retry(self, task_id: str) -> PrintTask:
        """Run a failed job again. Only the print step is repeated."""
        task = self.get(task_id)
        if task.status != PrintStatus.FAILED:
            raise PrintTaskStateError()

        task.status = PrintStatus.PENDING
        self._schedule(task)
        logger.info(f"Retrying print job {task.id} for record {task.record_id}")
        return task

    async def drain(self):
        """Wait until no print job is running."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    @property
    def running(self) -> int:
        return len(self._running)

    def _schedule(self, task: PrintTask):
        job = asyncio.create_task(self._run(task))
        self._running.add(job)
        job.add_done_callback(self._running.discard)

    async def _run(self, task: PrintTask):
        task.start()
        surface = None
        try:
            document = await self._fetch(task)
            if not document:
                raise PrintError("Prescription document is empty")

            task.status = PrintStatus.RENDERING
            surface = RenderSurface.create(document)
            await asyncio.sleep(self.config.PRINT_LOAD_DELAY)

            task.status = PrintStatus.PRINTING
            await self.printer.print_file(surface.path, task.title)
            task.complete()
            logger.info(f"Printed prescription for record {task.record_id}")
        except BackendError as e:
            task.fail(e.message)
            logger.warning(f"Could not fetch prescription for record {task.record_id}: {e.message}")
        except PrintError as e:
            task.fail(str(e))
            logger.warning(f"Could not print prescription for record {task.record_id}: {e}")
        except Exception as e:
            task.fail("Unexpected error while printing")
            logger.exception(f"Print job {task.id} crashed: {e}")
        finally:
            if surface is not None:
                await asyncio.sleep(self.config.PRINT_RELEASE_DELAY)
                surface.release()

    async def _fetch(self, task: PrintTask) -> bytes:
        task.status = PrintStatus.FETCHING
        if self.config.PRESCRIPTION_SOURCE == "generate":
            if task.record is None:
                raise PrintError("No registered record to generate the prescription from")
            return await asyncio.to_thread(render_prescription, task.record, self.config)
        if self.config.PRESCRIPTION_SOURCE == "url":
            url = await task.source.fetch_prescription_url(task.record_id)
            return await task.source.download(url)
        return await task.source.fetch_prescription_document(task.record_id)
