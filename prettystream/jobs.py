from __future__ import annotations
import logging, threading, time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Union

from .api import JSONParseError, format_json, line_count, parse_json
from .highlight import highlight_chunk
from .splitter import SNAP_WINDOW, compute_chunk_boundaries, iter_chunks

log = logging.getLogger(__name__)

STAGE_PARSING = "Parsing…"
STAGE_FORMATTING = "Formatting…"
STAGE_HIGHLIGHTING = "Highlighting…"

# ------------------------------ Config ------------------------------
@dataclass
class PipelineConfig:
    chunk_size: int = 1_000_000      # target characters per chunk
    snap_window: int = SNAP_WINDOW   # newline search distance around each cut
    indent: int = 2
    yield_threshold: int = 150_000   # markup size above which we pause for yield_delay
    yield_delay: float = 0.001       # seconds

# ------------------------------ Jobs & events ------------------------------
class JobState(Enum):
    IDLE = "idle"
    PARSING = "parsing"
    SERIALIZING = "serializing"
    SPLITTING = "splitting"
    HIGHLIGHTING = "highlighting"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"

@dataclass(frozen=True)
class FormatRequest:
    job_id: int
    text: str
    kind: ClassVar[str] = "format"

    @classmethod
    def from_message(cls, msg: Dict[str, Any]) -> "FormatRequest":
        job_id, text = msg.get("jobId"), msg.get("text")
        if not isinstance(job_id, int) or isinstance(job_id, bool):
            raise ValueError(f"format request needs an integer jobId, got {job_id!r}")
        if not isinstance(text, str):
            raise ValueError(f"format request needs a string text, got {type(text).__name__}")
        return cls(job_id, text)

    def to_message(self) -> Dict[str, Any]:
        return {"kind": self.kind, "jobId": self.job_id, "text": self.text}

@dataclass(frozen=True)
class FormatJob:
    job_id: int
    text: str
    started: float = field(default_factory=time.perf_counter)

@dataclass(frozen=True)
class ProgressEvent:
    job_id: int
    percent: int
    stage: str
    detail: Optional[str] = None
    kind: ClassVar[str] = "progress"

    def to_message(self) -> Dict[str, Any]:
        msg: Dict[str, Any] = {"kind": self.kind, "jobId": self.job_id, "percent": self.percent, "stage": self.stage}
        if self.detail is not None:
            msg["detail"] = self.detail
        return msg

@dataclass(frozen=True)
class ChunkEvent:
    job_id: int
    index: int
    markup: str
    kind: ClassVar[str] = "chunk"

    def to_message(self) -> Dict[str, Any]:
        return {"kind": self.kind, "jobId": self.job_id, "index": self.index, "markup": self.markup}

@dataclass(frozen=True)
class DoneEvent:
    job_id: int
    formatted: str
    total_lines: int
    ms: int
    kind: ClassVar[str] = "done"

    def to_message(self) -> Dict[str, Any]:
        return {"kind": self.kind, "jobId": self.job_id, "formatted": self.formatted,
                "totalLines": self.total_lines, "ms": self.ms}

@dataclass(frozen=True)
class ErrorEvent:
    job_id: int
    message: str
    kind: ClassVar[str] = "error"

    def to_message(self) -> Dict[str, Any]:
        return {"kind": self.kind, "jobId": self.job_id, "message": self.message}

Event = Union[ProgressEvent, ChunkEvent, DoneEvent, ErrorEvent]
Sink = Callable[[Event], None]

def size_label(n: int) -> str:
    kb = n / 1024
    return f"{kb:.1f}KB" if kb < 1024 else f"{kb / 1024:.1f}MB"

def highlight_percent(done: int, total: int) -> int:
    # parse/format own 0-35, chunks 35-95, the rest is completion
    return min(97, 35 + int(done * 60 / total + 0.5))

# ------------------------------ Controller ------------------------------
class JobController:
    """Runs format jobs and forwards their events to `sink`.

    Callers write the current job id; a job whose id is no longer current
    stops at its next check and emits nothing more. Events are delivered
    under the same lock that guards the id, so once `cancel()` or `submit()`
    returns, the superseded job is silent. `state` holds the lifecycle state
    of the most recently accepted job only.
    """

    def __init__(self, sink: Sink, config: Optional[PipelineConfig] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self._sink = sink
        self.config = config or PipelineConfig()
        self._sleep = sleep
        self._lock = threading.RLock()
        self._current: Optional[int] = None
        self._state = JobState.IDLE
        self._state_job_id: Optional[int] = None

    @property
    def current_job_id(self) -> Optional[int]:
        with self._lock:
            return self._current

    @property
    def state(self) -> JobState:
        with self._lock:
            return self._state

    @property
    def state_job_id(self) -> Optional[int]:
        with self._lock:
            return self._state_job_id

    def is_current(self, job_id: int) -> bool:
        with self._lock:
            return self._current == job_id

    def accept(self, text: str, job_id: int) -> FormatJob:
        """Make `job_id` current (superseding any running job) without starting it."""
        return self.accept_request(FormatRequest(job_id, text))

    def accept_request(self, request: FormatRequest) -> FormatJob:
        with self._lock:
            prev = self._current
            self._current = request.job_id
            self._state = JobState.IDLE
            self._state_job_id = request.job_id
        if prev is not None and prev != request.job_id:
            log.debug("job %d supersedes job %d", request.job_id, prev)
        return FormatJob(request.job_id, request.text)

    def submit(self, text: str, job_id: int) -> threading.Thread:
        return self.submit_request(FormatRequest(job_id, text))

    def submit_request(self, request: FormatRequest) -> threading.Thread:
        job = self.accept_request(request)
        t = threading.Thread(target=self.run, args=(job,), name=f"format-job-{job.job_id}", daemon=True)
        t.start()
        return t

    def cancel(self, job_id: Optional[int] = None) -> None:
        """Invalidate the current job (or only `job_id`, if it is still current)."""
        with self._lock:
            if self._current is None or (job_id is not None and job_id != self._current):
                return
            log.debug("job %d cancelled", self._current)
            self._current = None

    def handle_message(self, msg: Dict[str, Any]) -> Optional[threading.Thread]:
        """Request protocol: {"kind": "format", "jobId", "text"} or {"kind": "cancel", "jobId"}."""
        kind = msg.get("kind")
        if kind == "format":
            return self.submit_request(FormatRequest.from_message(msg))
        if kind == "cancel":
            self.cancel(msg.get("jobId"))
        else:
            log.warning("ignoring message of kind %r", kind)
        return None

    # ---- pipeline -----------------------------------------------------
    def _transition(self, job: FormatJob, state: JobState, note: str = "") -> None:
        with self._lock:
            # a superseded job no longer owns the slot
            if self._state_job_id != job.job_id:
                return
            self._state = state
        log.debug("job %d -> %s %s", job.job_id, state.value, note)

    def _emit(self, event: Event) -> bool:
        with self._lock:
            if self._current != event.job_id:
                return False
            self._sink(event)
            return True

    def _abandon(self, job: FormatJob) -> None:
        self._transition(job, JobState.CANCELLED)

    def _pause(self, markup_len: int) -> None:
        cfg = self.config
        self._sleep(cfg.yield_delay if markup_len > cfg.yield_threshold else 0)

    def run(self, job: FormatJob) -> None:
        """Execute `job` on the calling thread. Never raises."""
        try:
            self._run(job)
        except JSONParseError as ex:
            log.info("job %d: invalid JSON: %s", job.job_id, ex)
            self._transition(job, JobState.ERROR)
            if not self._emit(ErrorEvent(job.job_id, str(ex))):
                self._abandon(job)
        except Exception as ex:
            log.exception("job %d failed", job.job_id)
            self._transition(job, JobState.ERROR)
            self._emit(ErrorEvent(job.job_id, str(ex) or type(ex).__name__))

    def _run(self, job: FormatJob) -> None:
        cfg = self.config
        jid = job.job_id

        self._transition(job, JobState.PARSING)
        if not self._emit(ProgressEvent(jid, 5, STAGE_PARSING)):
            return self._abandon(job)
        data = parse_json(job.text)

        self._transition(job, JobState.SERIALIZING)
        if not self._emit(ProgressEvent(jid, 20, STAGE_FORMATTING)):
            return self._abandon(job)
        pretty = format_json(data, cfg.indent)
        del data

        size = size_label(len(pretty))
        self._transition(job, JobState.SPLITTING, size)
        if not self._emit(ProgressEvent(jid, 35, STAGE_HIGHLIGHTING, size)):
            return self._abandon(job)
        bounds = compute_chunk_boundaries(pretty, cfg.chunk_size, cfg.snap_window)
        total = len(bounds) - 1
        self._pause(0)

        for i, _, _, piece in iter_chunks(pretty, bounds):
            if not self.is_current(jid):
                return self._abandon(job)
            self._transition(job, JobState.HIGHLIGHTING, f"{i + 1}/{total}")
            markup = highlight_chunk(piece)
            if not self._emit(ChunkEvent(jid, i, markup)):
                return self._abandon(job)
            self._pause(len(markup))
            detail = f"{i + 1}/{total} chunks"
            if not self._emit(ProgressEvent(jid, highlight_percent(i + 1, total), STAGE_HIGHLIGHTING, detail)):
                return self._abandon(job)

        ms = int((time.perf_counter() - job.started) * 1000 + 0.5)
        if not self._emit(DoneEvent(jid, pretty, line_count(pretty), ms)):
            return self._abandon(job)
        self._transition(job, JobState.DONE, f"{ms}ms")

# ------------------------------ Caller side ------------------------------
class EmptyInputError(ValueError):
    pass

class FormatSession:
    """Caller half of the protocol: numbers jobs, drops stale events, collects output."""

    def __init__(self, config: Optional[PipelineConfig] = None,
                 on_event: Optional[Sink] = None):
        self._cond = threading.Condition()
        self._job_id = 0
        self._on_event = on_event
        self.controller = JobController(self._receive, config)
        self.busy = False
        self.chunks: List[str] = []
        self.progress: Optional[ProgressEvent] = None
        self.result: Optional[DoneEvent] = None
        self.error: Optional[ErrorEvent] = None

    @property
    def job_id(self) -> int:
        return self._job_id

    @property
    def markup(self) -> str:
        return "".join(self.chunks)

    def format(self, text: str, background: bool = True) -> int:
        text = text.strip()
        if not text:
            raise EmptyInputError("Input is empty.")
        with self._cond:
            self._job_id += 1
            jid = self._job_id
            self.busy = True
            self.chunks = []
            self.progress = self.result = self.error = None
        if background:
            self.controller.submit(text, jid)
        else:
            self.controller.run(self.controller.accept(text, jid))
        return jid

    def cancel(self) -> None:
        with self._cond:
            stale = self._job_id
            self._job_id += 1
            self.busy = False
            self._cond.notify_all()
        self.controller.cancel(stale)

    def wait(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: not self.busy, timeout)

    def _receive(self, event: Event) -> None:
        with self._cond:
            if event.job_id != self._job_id:
                return
            if isinstance(event, ProgressEvent):
                self.progress = event
            elif isinstance(event, ChunkEvent):
                self.chunks.append(event.markup)
            else:
                if isinstance(event, DoneEvent):
                    self.result = event
                else:
                    self.error = event
                self.busy = False
                self._cond.notify_all()
        if self._on_event:
            self._on_event(event)
