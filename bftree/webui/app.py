from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field, field_validator

from bftree.emitter import compile_to_c
from bftree.instructions import Program, count_instructions, dump_program, to_source
from bftree.interpreter import ExecutionState, InterpreterError, TreeInterpreter
from bftree.optimizer import optimize
from bftree.parser import ParseError, parse
from bftree.visualizer import VisualizerSession

from .session import SessionRecord, SessionStore

logger = logging.getLogger(__name__)


def _string_to_input_bytes(data: str) -> List[int]:
    return list(data.encode("utf-8"))


class ProgramRequest(BaseModel):
    code: str
    optimize: bool = False
    lenient: bool = False


class ParseResponse(BaseModel):
    listing: List[str]
    instruction_count: int
    top_level_count: int
    canonical_source: str
    optimized: bool


class RunRequest(ProgramRequest):
    input: str = ""
    max_steps: Optional[int] = Field(default=1_000_000, ge=1)


class RunResponse(BaseModel):
    output: List[int]
    output_text: str
    pointer: int


class CompileResponse(BaseModel):
    c_source: str


class SessionConfiguration(ProgramRequest):
    input: str = ""
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)

    @field_validator("code")
    @classmethod
    def validate_code(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("code must not be empty")
        return value


class SessionState(BaseModel):
    step: int
    pc: int
    instruction: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: List[int]
    instruction_count: int


class SessionPayload(BaseModel):
    session_id: str
    code: str
    optimized: bool
    lenient: bool
    listing: List[str]
    state: SessionState
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class StepResponse(BaseModel):
    session_id: str
    states: List[SessionState]
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]


class SessionRunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    pc: int = Field(ge=0)


def _state_to_model(state: ExecutionState) -> SessionState:
    return SessionState(
        step=state.step,
        pc=state.pc,
        instruction=state.instruction,
        pointer=state.pointer,
        tape_start=state.tape_start,
        tape=list(state.tape),
        output=list(state.output),
        instruction_count=state.instruction_count,
    )


def _build_program(payload: ProgramRequest) -> Program:
    try:
        program = parse(payload.code, allow_unterminated=payload.lenient)
    except ParseError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(exc), "position": exc.position},
        ) from exc
    if payload.optimize:
        program = optimize(program)
    return program


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    session_store = store if store is not None else SessionStore()
    app = FastAPI(title="bftree API", version="0.1.0")

    def _get_record(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    def _history_states(session: VisualizerSession) -> List[SessionState]:
        return [_state_to_model(state) for state in session.history]

    def _build_payload(record: SessionRecord) -> SessionPayload:
        session = record.session
        with record.lock:
            return SessionPayload(
                session_id=record.session_id,
                code=record.source,
                optimized=record.optimized,
                lenient=record.lenient,
                listing=record.listing,
                state=_state_to_model(session.current_state()),
                history=_history_states(session),
                finished=session.is_finished(),
                history_size=len(session.history),
                breakpoints=session.list_breakpoints(),
                hit_breakpoint=session.hit_breakpoint,
            )

    def _build_step_response(record: SessionRecord, states: Sequence[ExecutionState]) -> StepResponse:
        session = record.session
        with record.lock:
            return StepResponse(
                session_id=record.session_id,
                states=[_state_to_model(state) for state in states],
                history=_history_states(session),
                finished=session.is_finished(),
                history_size=len(session.history),
                breakpoints=session.list_breakpoints(),
                hit_breakpoint=session.hit_breakpoint,
            )

    @app.post("/api/parse", response_model=ParseResponse)
    def parse_program(payload: ProgramRequest) -> ParseResponse:
        program = _build_program(payload)
        return ParseResponse(
            listing=dump_program(program, numbered=True).splitlines(),
            instruction_count=count_instructions(program),
            top_level_count=len(program),
            canonical_source=to_source(program),
            optimized=payload.optimize,
        )

    @app.post("/api/run", response_model=RunResponse)
    def run_program(payload: RunRequest) -> RunResponse:
        program = _build_program(payload)
        interpreter = TreeInterpreter()
        try:
            output = interpreter.run(
                program,
                input_data=_string_to_input_bytes(payload.input),
                max_steps=payload.max_steps,
            )
        except InterpreterError as exc:
            logger.debug("Run request halted: %s", exc)
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return RunResponse(
            output=list(output),
            output_text=output.decode("latin-1"),
            pointer=interpreter.tape.pointer,
        )

    @app.post("/api/compile", response_model=CompileResponse)
    def compile_program(payload: ProgramRequest) -> CompileResponse:
        return CompileResponse(c_source=compile_to_c(_build_program(payload)))

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        program = _build_program(payload)
        record = session_store.create_session(
            program=program,
            source=payload.code,
            input_template=_string_to_input_bytes(payload.input),
            tape_window=payload.tape_window,
            max_steps=payload.max_steps,
            history_limit=payload.history_limit,
            optimized=payload.optimize,
            lenient=payload.lenient,
        )
        return _build_payload(record)

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return _build_payload(_get_record(session_id))

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        _get_record(session_id)
        return _build_payload(session_store.reset(session_id))

    @app.post("/api/session/{session_id}/step", response_model=StepResponse)
    def step_session(session_id: str, payload: StepRequest) -> StepResponse:
        record = _get_record(session_id)
        try:
            states = session_store.step(session_id, payload.count)
        except InterpreterError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/run", response_model=StepResponse)
    def run_session(session_id: str, payload: SessionRunRequest) -> StepResponse:
        record = _get_record(session_id)
        try:
            states = session_store.run(
                session_id,
                limit=payload.limit,
                ignore_breakpoints=payload.ignore_breakpoints,
            )
        except InterpreterError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionPayload)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionPayload:
        _get_record(session_id)
        try:
            record = session_store.add_breakpoint(session_id, payload.pc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return _build_payload(record)

    @app.delete("/api/session/{session_id}/breakpoints/{pc}", response_model=SessionPayload)
    def remove_breakpoint(session_id: str, pc: int) -> SessionPayload:
        record = _get_record(session_id)
        if not session_store.remove_breakpoint(session_id, pc):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Breakpoint not found at pc={pc}",
            )
        return _build_payload(record)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str) -> Response:
        if not session_store.remove(session_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown session id: {session_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
