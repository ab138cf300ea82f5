from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from bftree.instructions import Program, dump_program
from bftree.interpreter import ExecutionState
from bftree.visualizer import VisualizerSession


@dataclass
class SessionRecord:
    """A stepping session together with the program it was built from.

    ``lock`` serialises everything that advances or rewinds the session; the
    underlying step generator cannot be driven from two threads at once.
    """

    session_id: str
    source: str
    program: Program
    optimized: bool
    lenient: bool
    session: VisualizerSession
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def listing(self) -> List[str]:
        return dump_program(self.program, numbered=True).splitlines()


class SessionStore:
    """Thread-safe registry of stepping sessions keyed by a random id."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionRecord] = {}
        self._lock = threading.RLock()

    def create_session(
        self,
        *,
        program: Program,
        source: str,
        input_template: List[int],
        tape_window: int = 10,
        max_steps: Optional[int] = None,
        history_limit: int = 200,
        optimized: bool = False,
        lenient: bool = False,
    ) -> SessionRecord:
        record = SessionRecord(
            session_id=uuid.uuid4().hex,
            source=source,
            program=program,
            optimized=optimized,
            lenient=lenient,
            session=VisualizerSession(
                program=program,
                input_template=input_template,
                tape_window=tape_window,
                max_steps=max_steps,
                history_limit=history_limit,
                source=source,
            ),
        )
        with self._lock:
            self._sessions[record.session_id] = record
        return record

    def get(self, session_id: str) -> SessionRecord:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError as exc:
                raise KeyError(f"Unknown session id: {session_id}") from exc

    def step(self, session_id: str, count: int = 1) -> Sequence[ExecutionState]:
        record = self.get(session_id)
        with record.lock:
            return list(record.session.step_forward(count))

    def run(
        self,
        session_id: str,
        limit: Optional[int] = None,
        ignore_breakpoints: bool = False,
    ) -> Sequence[ExecutionState]:
        record = self.get(session_id)
        session = record.session
        with record.lock:
            if not ignore_breakpoints:
                return list(session.run_until_break(limit))
            saved = set(session.breakpoints)
            session.clear_breakpoints()
            session.hit_breakpoint = None
            try:
                return list(session.run_until_break(limit))
            finally:
                session.breakpoints = saved
                session.hit_breakpoint = None

    def add_breakpoint(self, session_id: str, pc: int) -> SessionRecord:
        record = self.get(session_id)
        with record.lock:
            if not 0 <= pc < record.session.instruction_count:
                raise ValueError(f"pc must be below {record.session.instruction_count}")
            record.session.add_breakpoint(pc)
        return record

    def remove_breakpoint(self, session_id: str, pc: int) -> bool:
        record = self.get(session_id)
        with record.lock:
            return record.session.remove_breakpoint(pc)

    def reset(self, session_id: str) -> SessionRecord:
        record = self.get(session_id)
        with record.lock:
            session = record.session
            session.history.clear()
            session.hit_breakpoint = None
            session.clear_breakpoints()
            session.restart()
        return record

    def remove(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


__all__ = ["SessionRecord", "SessionStore"]
