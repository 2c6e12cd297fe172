"""Tolerant JSON parsing of stage output into typed schemas."""

from __future__ import annotations

import json
import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from .errors import StageParseError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_decoder = json.JSONDecoder()


def slice_json_block(text: str) -> str:
    """Text from the first ``{`` to the last ``}``, or the text unchanged."""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text


def _load_object(text: str) -> dict:
    try:
        data = json.loads(slice_json_block(text))
    except json.JSONDecodeError:
        # Trailing prose with a stray "}" breaks the slice; decode the first object only.
        start = text.find("{")
        if start == -1:
            raise StageParseError("no JSON object in stage output") from None
        try:
            data, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError as exc:
            raise StageParseError(f"invalid JSON in stage output: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise StageParseError(f"expected a JSON object, got {type(data).__name__}")
    return data


def parse_stage_output(text: str, schema: type[M]) -> M:
    """Parse model text into ``schema``.

    Raises:
        StageParseError: No JSON object could be found or it does not fit.
    """
    if not text or not text.strip():
        raise StageParseError("empty stage output")
    data = _load_object(text)
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise StageParseError(
            f"{schema.__name__} schema mismatch: {exc.error_count()} error(s)"
        ) from exc
