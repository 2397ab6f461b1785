"""Recover a JSON object from free-form model text."""

from __future__ import annotations

import json
import re
from typing import Any

from chancery.decision.errors import LooseJSONError

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


def parse_loose_json(text: str) -> Any:
    """Parse model output that should be, or contain, a JSON object.

    Tries, in order: the whole text, the first fenced code block, and the
    span from the first ``{`` to the last ``}``.

    Args:
        text: Raw completion text.

    Returns:
        The decoded JSON value.

    Raises:
        LooseJSONError: If none of the candidates decode.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    fenced = _FENCE_RE.search(text)
    if fenced:
        try:
            return json.loads(fenced.group(1))
        except json.JSONDecodeError:
            pass

    first = text.find("{")
    last = text.rfind("}")
    if first >= 0 and last > first:
        try:
            return json.loads(text[first : last + 1])
        except json.JSONDecodeError as e:
            raise LooseJSONError(f"Response was not JSON parseable: {e}", text) from e

    raise LooseJSONError("Response was not JSON parseable", text)
