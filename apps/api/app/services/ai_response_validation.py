"""Turn raw model replies into validated pydantic objects.

Chat models wrap JSON in markdown fences or surround it with prose. Callers
only ever need the first JSON object in the reply, so parsing scans for it
instead of trusting the reply to be pure JSON.
"""

from __future__ import annotations

import json
import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_decoder = json.JSONDecoder()


def parse_json_object(text: str | None) -> dict | None:
    """First JSON object embedded in `text`, or None."""
    if not text:
        return None
    position = text.find("{")
    while position != -1:
        try:
            data, _ = _decoder.raw_decode(text, position)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            return data
        position = text.find("{", position + 1)

    logger.warning(f"No JSON object in model output ({len(text)} chars)")
    return None


def validate_model(model_cls: type[ModelT], data: dict | None) -> ModelT | None:
    if data is None:
        return None
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        logger.warning(f"{model_cls.__name__} validation failed: {exc.error_count()} error(s)")
        return None


def parse_model(model_cls: type[ModelT], text: str | None) -> ModelT | None:
    """Parse and validate in one step; None on any failure."""
    return validate_model(model_cls, parse_json_object(text))
