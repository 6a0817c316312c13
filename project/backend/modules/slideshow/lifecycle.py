"""
Process lifecycle management for slideshow module.

Tracks every in-flight FFmpeg invocation, supports bulk termination on
shutdown and runs a periodic monitoring sweep. The manager is an explicit
value owned by the caller (the API lifespan or a single compose() call).
"""
import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional
from uuid import UUID, uuid4

from shared.logging import get_logger

logger = get_logger("slideshow.lifecycle")


@dataclass
class ProcessHandle:
    """Registry entry for one external encoder invocation."""

    id: str
    label: str
    job_id: Optional[UUID] = None
    process: Optional[Any] = None  # asyncio.subprocess.Process once spawned
    started_at: float = field(default_factory=time.monotonic)
    terminated: bool = False

    @property
    def is_running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    def attach(self, process: Any) -> None:
        """Bind the spawned process. A handle terminated before spawn stops it at once."""
        self.process = process
        if self.terminated:
            _signal_process(self, force=True)


def _signal_process(handle: ProcessHandle, force: bool = False) -> bool:
    process = handle.process
    if process is None or process.returncode is not None:
        return True
    try:
        if force:
            process.kill()
        else:
            process.terminate()
    except ProcessLookupError:
        # Exited between the returncode check and the signal
        pass
    except Exception as e:
        logger.error(
            f"Error killing process {handle.id}: {e}",
            extra={"handle_id": handle.id, "job_id": str(handle.job_id), "error": str(e)}
        )
        return False
    return True


class ProcessLifecycleManager:
    """Registry of active FFmpeg processes."""

    def __init__(self) -> None:
        self._handles: Dict[str, ProcessHandle] = {}
        self._sweeper: Optional[asyncio.Task] = None

    @property
    def active_count(self) -> int:
        return len(self._handles)

    def handles(self) -> List[ProcessHandle]:
        """Snapshot of currently registered handles."""
        return list(self._handles.values())

    def register(self, label: str, job_id: Optional[UUID] = None) -> ProcessHandle:
        """
        Register an invocation before its process is started.

        Args:
            label: Short stage label (e.g. "segment_003", "concat", "music")
            job_id: Owning job

        Returns:
            New handle; call handle.attach(process) once spawned
        """
        handle = ProcessHandle(id=f"{label}_{uuid4().hex[:12]}", label=label, job_id=job_id)
        self._handles[handle.id] = handle
        logger.debug(
            f"Registered process {handle.id}",
            extra={"handle_id": handle.id, "job_id": str(job_id), "active": len(self._handles)}
        )
        return handle

    def deregister(self, handle_id: str) -> bool:
        """
        Remove a handle from the registry.

        Returns:
            True if the handle was registered, False otherwise
        """
        handle = self._handles.pop(handle_id, None)
        if handle is None:
            return False
        logger.debug(
            f"Deregistered process {handle_id}",
            extra={"handle_id": handle_id, "job_id": str(handle.job_id), "active": len(self._handles)}
        )
        return True

    @asynccontextmanager
    async def track(self, label: str, job_id: Optional[UUID] = None) -> AsyncIterator[ProcessHandle]:
        """Register for the duration of the block, deregister on any exit."""
        handle = self.register(label, job_id=job_id)
        try:
            yield handle
        finally:
            self.deregister(handle.id)

    def terminate(self, handle_id: str, force: bool = False) -> bool:
        """
        Signal one tracked process to stop. Never raises.

        Args:
            handle_id: Handle to terminate
            force: Send SIGKILL instead of SIGTERM

        Returns:
            False if the handle is unknown or signalling failed
        """
        handle = self._handles.get(handle_id)
        if handle is None:
            return False
        handle.terminated = True
        return _signal_process(handle, force=force)

    def terminate_all(self, force: bool = False) -> int:
        """
        Terminate every tracked process and clear the registry. Never raises.

        Returns:
            Number of handles that were signalled successfully
        """
        handles = self.handles()
        logger.info(f"Cleaning up {len(handles)} active processes...")
        signalled = 0
        for handle in handles:
            handle.terminated = True
            if handle.is_running:
                logger.info(f"Killing process {handle.id}...", extra={"handle_id": handle.id})
            if _signal_process(handle, force=force):
                signalled += 1
        self._handles.clear()
        return signalled

    def sweep(self) -> int:
        """Report the number of tracked processes. Monitoring only, terminates nothing."""
        count = len(self._handles)
        logger.info(f"Active processes count: {count}", extra={"active_processes": count})
        return count

    def start_sweeper(self, interval: float) -> asyncio.Task:
        """Run sweep() every `interval` seconds on the current event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper

        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval)
                self.sweep()

        self._sweeper = asyncio.create_task(_loop())
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
