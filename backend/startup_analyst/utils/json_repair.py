"""
LLM JSON Response Repair

Models asked to answer with "ONLY valid JSON" still wrap it in markdown fences,
surround it with prose, stop mid-object when the token limit is hit, or hand
back a one-element array. parse_llm_json() recovers the intended value or
raises ParseFailure; it never invents content.

Every LLM response in the pipeline is decoded through this module.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Tuple

from ..core.errors import ParseFailure
from ..core.logging_config import PROMPT_PREVIEW_LENGTH, preview

logger = logging.getLogger(__name__)

EXPECT_OBJECT = "object"
EXPECT_ARRAY = "array"

FENCE_PATTERN = re.compile(r"```(?:json|JSON)?")
CLOSERS = {"{": "}", "[": "]"}
MAX_REPAIR_CUTS = 64

_INVALID = object()


@dataclass
class ScanState:
    """Result of walking a JSON-ish fragment character by character"""
    spans: List[Tuple[int, int]] = field(default_factory=list)  # complete top-level values
    stack: List[str] = field(default_factory=list)  # still-open brackets
    in_string: bool = False
    string_start: int = -1
    last_separator: int = -1  # last ',' outside strings while nested


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` markers wherever they appear"""
    return FENCE_PATTERN.sub("", text).strip()


def scan_brackets(text: str) -> ScanState:
    """Track string-literal state (with escapes) and bracket nesting across text."""
    state = ScanState()
    escaped = False
    span_start = -1

    for index, char in enumerate(text):
        if state.in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                state.in_string = False
            continue

        if char == '"':
            state.in_string = True
            state.string_start = index
        elif char in CLOSERS:
            if not state.stack:
                span_start = index
            state.stack.append(char)
        elif char in ("}", "]"):
            if state.stack and CLOSERS[state.stack[-1]] == char:
                state.stack.pop()
                if not state.stack:
                    state.spans.append((span_start, index + 1))
        elif char == "," and state.stack:
            state.last_separator = index

    return state


def _try_load(text: str) -> Any:
    try:
        return json.loads(text, strict=False)
    except (json.JSONDecodeError, ValueError):
        return _INVALID


def _candidate_starts(text: str, expect: str) -> List[int]:
    """Opening bracket positions to decode from, most likely first."""
    object_start, array_start = text.find("{"), text.find("[")
    if expect == EXPECT_OBJECT:
        # A "[0]" in leading prose must not shadow the object that follows
        ordered = (object_start, array_start)
    else:
        ordered = sorted((object_start, array_start))
    return [index for index in ordered if index != -1]


def _slice_candidate(text: str, start: int) -> str:
    """Slice from an opening bracket to the last matching closer."""
    end = text.rfind(CLOSERS[text[start]])
    if end > start:
        return text[start:end + 1]
    return text[start:]


def _close_fragment(fragment: str) -> str:
    """Terminate an open string at its opening quote and close every open bracket."""
    state = scan_brackets(fragment)
    closed = fragment
    if state.in_string:
        closed = fragment[:state.string_start + 1] + '"'
    closed = closed.rstrip()
    return closed + "".join(CLOSERS[opener] for opener in reversed(state.stack))


def _repair_truncated(fragment: str) -> Any:
    """Close a truncated value, cutting back one member at a time until it parses."""
    candidate = fragment
    for _ in range(MAX_REPAIR_CUTS):
        value = _try_load(_close_fragment(candidate))
        if value is not _INVALID:
            return value

        last_separator = scan_brackets(candidate).last_separator
        if last_separator <= 0:
            return _INVALID
        candidate = candidate[:last_separator]

    return _INVALID


def _recover(fragment: str) -> Any:
    state = scan_brackets(fragment)

    if state.spans:
        # Everything up to the last point where nesting returned to zero
        value = _try_load(fragment[:state.spans[-1][1]])
        if value is not _INVALID:
            return value

        for begin, end in state.spans:
            value = _try_load(fragment[begin:end])
            if value is not _INVALID:
                return value

    return _repair_truncated(fragment)


def _coerce_shape(value: Any, expect: str, context: str, raw: str) -> Any:
    if expect == EXPECT_ARRAY:
        if isinstance(value, list):
            return value
        if isinstance(value, dict):
            return [value]
        raise ParseFailure(f"{context}: expected a JSON array, got {type(value).__name__}", raw)

    if isinstance(value, list):
        if value and isinstance(value[0], dict):
            logger.debug(f"{context}: unwrapped single object from top-level array")
            return value[0]
        raise ParseFailure(f"{context}: expected a JSON object, got an array without one", raw)
    if isinstance(value, dict):
        return value
    raise ParseFailure(f"{context}: expected a JSON object, got {type(value).__name__}", raw)


def parse_llm_json(raw: str, expect: str = EXPECT_OBJECT, context: str = "LLM response") -> Any:
    """
    Decode a JSON value from raw LLM output.

    Args:
        raw: The model's raw text
        expect: "object" (arrays are unwrapped to their first element) or
            "array" (a lone object is wrapped in a list)
        context: Label used in log lines and error messages

    Returns:
        dict for expect="object", list for expect="array"

    Raises:
        ParseFailure: carrying the first 2000 characters of the raw response
    """
    if expect not in (EXPECT_OBJECT, EXPECT_ARRAY):
        raise ValueError(f"expect must be '{EXPECT_OBJECT}' or '{EXPECT_ARRAY}', got {expect!r}")

    if not raw or not raw.strip():
        raise ParseFailure(f"{context}: empty response", raw or "")

    text = strip_code_fences(raw)
    starts = _candidate_starts(text, expect)
    if not starts:
        logger.error(f"{context}: no JSON found in response: {preview(raw, PROMPT_PREVIEW_LENGTH)}")
        raise ParseFailure(f"{context}: no JSON found in response", raw)

    shape_error = None
    for start in starts:
        value = _try_load(_slice_candidate(text, start))
        if value is _INVALID:
            value = _recover(text[start:])
            if value is _INVALID:
                continue
            logger.warning(f"{context}: recovered malformed or truncated JSON")

        try:
            return _coerce_shape(value, expect, context, raw)
        except ParseFailure as e:
            shape_error = e

    if shape_error is not None:
        raise shape_error
    logger.error(f"{context}: JSON repair failed: {preview(raw, PROMPT_PREVIEW_LENGTH)}")
    raise ParseFailure(f"{context}: response is not valid JSON, even after repair", raw)
