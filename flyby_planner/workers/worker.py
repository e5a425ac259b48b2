"""
Cancellable, progress-reporting host for long-running tasks.

A ComputeWorker owns one task running in a separate process (``"process"``,
started with the spawn method) or thread (``"thread"``). Host and worker only
exchange messages through queues; the thread backend deep-copies every
message so neither side ever holds the other's objects.

Worker states::

    Idle -> Initialized -> Running -> (Progress)* -> Complete | Stopped -> Initialized ...

A Stop while idle is ignored. Exceptions raised by a task end the run with
``Complete(Failed(...))`` and leave the worker ready for the next message.
"""
from __future__ import annotations

import copy
import logging
import multiprocessing
import queue
import signal
import threading
from collections import deque
from typing import Any, Callable, Optional

from flyby_planner.config import PlannerConfig
from flyby_planner.results import Cancelled, Failed, Outcome
from flyby_planner.workers.messages import (
    Complete,
    Continue,
    Debug,
    Initialize,
    Initialized,
    Pass,
    Progress,
    Received,
    Run,
    Stop,
    Stopped,
)
from flyby_planner.workers.tasks import Task

logger = logging.getLogger(__name__)

BACKENDS = ("process", "thread")
POLL_INTERVAL = 0.5  # seconds between liveness checks while waiting on the worker


class _CopyingQueue:
    """Thread queue storing deep copies of what is put in it."""

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()

    def put(self, item: Any) -> None:
        self._queue.put(copy.deepcopy(item))

    def get(self, block: bool = True, timeout: Optional[float] = None) -> Any:
        return self._queue.get(block, timeout)

    def get_nowait(self) -> Any:
        return self._queue.get_nowait()


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def _deliver(task: Task, data: Any, outbox) -> None:
    try:
        task.receive(data)
    except Exception:
        logger.exception("task failed to accept passed data")
    outbox.put(Received())


class _RunContext:
    """Checkpoint services offered to a running task."""

    def __init__(self, inbox, outbox, task: Task, progress_step: float) -> None:
        self._inbox = inbox
        self._outbox = outbox
        self._task = task
        self._step = progress_step
        self._last_fraction: Optional[float] = None
        self.cancelled = False
        self.shutdown = False
        self.deferred: deque = deque()

    def is_cancelled(self) -> bool:
        """Drain pending messages without blocking; True once Stop arrived."""
        while not self.cancelled:
            try:
                message = self._inbox.get_nowait()
            except queue.Empty:
                break
            match message:
                case None:
                    self.shutdown = True
                    self.cancelled = True
                case Stop():
                    self.cancelled = True
                case Pass(data=data):
                    _deliver(self._task, data, self._outbox)
                case _:
                    self.deferred.append(message)
        return self.cancelled

    def progress(self, fraction: float, data: Any = None) -> None:
        fraction = min(1.0, max(0.0, float(fraction)))
        last = self._last_fraction
        if last is not None:
            if fraction < last:
                return
            if fraction < 1.0 and fraction - last < self._step:
                return
        self._last_fraction = fraction
        self._outbox.put(Progress(fraction, data))

    def debug(self, data: Any) -> None:
        self._outbox.put(Debug(data))


def serve(task_factory: Callable[[], Task], inbox, outbox) -> None:
    """Worker loop: handle inbound messages until a ``None`` arrives."""
    task = task_factory()
    initialized = False
    progress_step = 0.0
    pending: deque = deque()

    while True:
        message = pending.popleft() if pending else inbox.get()
        match message:
            case None:
                break
            case Initialize(config=config):
                try:
                    task.initialize(config)
                except Exception as exc:
                    logger.exception("worker initialization failed")
                    initialized = False
                    outbox.put(Complete(Failed(_describe(exc))))
                    continue
                initialized = True
                progress_step = config.workers.progress_step
                outbox.put(Initialized())
            case Run() | Continue():
                if not initialized:
                    outbox.put(Complete(Failed("worker is not initialized")))
                    continue
                ctx = _RunContext(inbox, outbox, task, progress_step)
                try:
                    if isinstance(message, Run):
                        outcome = task.run(message.input, ctx)
                    else:
                        outcome = task.resume(message.input, ctx)
                except Exception as exc:
                    logger.exception("worker run failed")
                    outcome = Failed(_describe(exc))
                outbox.put(Stopped() if isinstance(outcome, Cancelled) else Complete(outcome))
                pending.extend(ctx.deferred)
                if ctx.shutdown:
                    break
            case Stop():
                logger.debug("stop received while idle")
            case Pass(data=data):
                _deliver(task, data, outbox)
            case _:
                logger.warning("worker ignored unknown message %r", message)


def _process_main(task_factory: Callable[[], Task], inbox, outbox) -> None:
    # Ctrl-C reaches the whole process group; the host turns it into a Stop.
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    serve(task_factory, inbox, outbox)


class ComputeWorker:
    """
    Host side of a worker.

    Args:
        task_factory: Zero-argument callable building the task inside the worker
        backend: "process" or "thread"

    ``run`` and ``resume`` block until the terminal message and return the
    Outcome (``Stopped`` maps to ``Cancelled()``); progress and debug
    messages are forwarded to the callbacks meanwhile. ``stop`` may be
    called from any thread or from a signal handler.
    """

    def __init__(self, task_factory: Callable[[], Task], backend: str = "process") -> None:
        if backend not in BACKENDS:
            raise ValueError(f"Unknown worker backend '{backend}'. Available: {','.join(BACKENDS)}")
        self.backend = backend
        name = f"{getattr(task_factory, '__name__', 'task')}-worker"
        if backend == "process":
            ctx = multiprocessing.get_context("spawn")
            self._inbox = ctx.Queue()
            self._outbox = ctx.Queue()
            self._runner = ctx.Process(target=_process_main, args=(task_factory, self._inbox, self._outbox),
                                       name=name, daemon=True)
        else:
            self._inbox = _CopyingQueue()
            self._outbox = _CopyingQueue()
            self._runner = threading.Thread(target=serve, args=(task_factory, self._inbox, self._outbox),
                                            name=name, daemon=True)
        self._lock = threading.RLock()
        self._running = False
        self._closed = False
        self._runner.start()

    # ------------------------------ Messaging --------------------------------

    def _send(self, message: Any) -> None:
        if self._closed:
            raise RuntimeError("worker is closed")
        self._inbox.put(message)

    def _receive(self) -> Any:
        while True:
            try:
                return self._outbox.get(True, POLL_INTERVAL)
            except queue.Empty:
                if not self._runner.is_alive():
                    raise RuntimeError("worker exited unexpectedly") from None

    def initialize(self, config: Optional[PlannerConfig] = None) -> None:
        """Send the configuration and wait for the acknowledgement."""
        self._send(Initialize(config if config is not None else PlannerConfig()))
        while True:
            match self._receive():
                case Initialized():
                    return
                case Complete(result=Failed(reason=reason)):
                    raise RuntimeError(f"worker initialization failed: {reason}")
                case other:
                    logger.debug("discarding %r while initializing", other)

    def send_data(self, data: Any) -> None:
        """Pass opaque data to the task; waits for the acknowledgement when idle."""
        with self._lock:
            running = self._running
            self._send(Pass(data))
        if running:
            return
        while True:
            match self._receive():
                case Received():
                    return
                case other:
                    logger.debug("discarding %r while passing data", other)

    def run(self, payload: Any, on_progress: Optional[Callable[[float, Any], None]] = None,
            on_debug: Optional[Callable[[Any], None]] = None) -> Outcome:
        """Start a run and block until it completes or stops."""
        return self._execute(Run(payload), on_progress, on_debug)

    def resume(self, payload: Any = None, on_progress: Optional[Callable[[float, Any], None]] = None,
               on_debug: Optional[Callable[[Any], None]] = None) -> Outcome:
        """Continue the previous run with new input."""
        return self._execute(Continue(payload), on_progress, on_debug)

    def _execute(self, message: Any, on_progress, on_debug) -> Outcome:
        with self._lock:
            if self._running:
                raise RuntimeError("worker is already running")
            self._send(message)
            self._running = True
        try:
            while True:
                match self._receive():
                    case Progress(fraction=fraction, data=data):
                        if on_progress is not None:
                            on_progress(fraction, data)
                    case Debug(data=data):
                        if on_debug is not None:
                            on_debug(data)
                        else:
                            logger.debug("worker debug: %s", data)
                    case Complete(result=result):
                        return result
                    case Stopped():
                        return Cancelled()
                    case other:
                        logger.debug("discarding %r during a run", other)
        finally:
            with self._lock:
                self._running = False

    def stop(self) -> None:
        """Ask the active run to stop at its next checkpoint; no effect when idle."""
        with self._lock:
            if self._running and not self._closed:
                self._inbox.put(Stop())

    @property
    def running(self) -> bool:
        return self._running

    def close(self, timeout: float = 5.0) -> None:
        """Shut the worker down."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._inbox.put(None)
        self._runner.join(timeout)
        if self.backend == "process" and self._runner.is_alive():
            logger.warning("worker did not exit within %.1f s, terminating", timeout)
            self._runner.terminate()
            self._runner.join()

    def __enter__(self) -> ComputeWorker:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
