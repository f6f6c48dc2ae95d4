"""Pull a JSON object out of a chat model reply and validate it."""

from __future__ import annotations

import json
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from src.agentic.result import Err, Ok, Result

M = TypeVar("M", bound=BaseModel)

# Greedy on purpose: replies wrap the object in prose or markdown fences.
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_json_reply(reply: str, model: type[M]) -> Result[M, str]:
    """Validate the outermost ``{...}`` block of ``reply`` against ``model``."""
    match = _JSON_OBJECT.search(reply)
    if match is None:
        return Err("No JSON found in model reply")

    try:
        return Ok(model.model_validate(json.loads(match.group(0))))
    except json.JSONDecodeError as e:
        return Err(f"Model reply is not valid JSON: {e}")
    except ValidationError as e:
        return Err(f"Model reply has unexpected shape: {e.error_count()} errors")
