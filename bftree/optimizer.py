from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .instructions import CountedInstruction, Instruction, Loop, Program

logger = logging.getLogger(__name__)


@dataclass
class _Span:
    start: int
    end: int
    instruction: CountedInstruction


def _is_mergeable(left: Instruction, right: Instruction) -> bool:
    # Two counted ops never merge directly; runs grow one unit at a time.
    if not isinstance(left, CountedInstruction) or type(left) is not type(right):
        return False
    return left.amount == 1 or right.amount == 1


def _merge(left: CountedInstruction, right: CountedInstruction) -> CountedInstruction:
    return type(left)(amount=left.amount + right.amount)


def optimize(program: Sequence[Instruction]) -> Program:
    """Fold runs of identical cell/pointer operations into counted operations.

    The input is left untouched and a new list is returned. A window of two
    siblings slides over the sequence; each mergeable pair is recorded as a
    span of original indices together with its merged instruction, and the
    merged instruction becomes the left element of the next window. When a
    merge extends a run beyond two operations the span recorded for the
    earlier part of the run is absorbed into the new one. Loop bodies are
    optimized recursively as the window reaches them.
    """
    items: List[Instruction] = list(program)
    spans: List[_Span] = []
    window: Optional[Instruction] = None

    for index, item in enumerate(items):
        if isinstance(item, Loop):
            item = items[index] = Loop(body=optimize(item.body))
            window = item
            continue
        if window is not None and _is_mergeable(window, item):
            merged = _merge(window, item)
            span = _Span(start=index - 1, end=index, instruction=merged)
            if merged.amount > 2 and spans and spans[-1].end == span.start:
                span.start = spans.pop().start
            spans.append(span)
            item = merged
        window = item

    if not spans:
        return items

    span_starts: Dict[int, _Span] = {span.start: span for span in spans}
    optimized: List[Instruction] = []
    index = 0
    while index < len(items):
        span = span_starts.get(index)
        if span is not None:
            optimized.append(span.instruction)
            index = span.end + 1
        else:
            optimized.append(items[index])
            index += 1

    logger.debug("Folded %d run(s): %d -> %d instructions", len(spans), len(items), len(optimized))
    return optimized


__all__ = ["optimize"]
