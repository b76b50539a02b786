"""
Reading the model's intent out of a :class:`~quest.core.schema.ModelResponse`.

Models answer in one of two ways:

* a native function-call list surfaced by the SDK, or
* text, usually a ```json fenced block, shaped like
  ``{"thoughts": "...", "payload": {"function_call": {...}, "text": "..."}}``.

This module is the only place that knows about the second form and about the argument synonyms
(``arguments`` / ``args`` / ``parameters``) models use inside it; the rest of the system only ever
sees a canonical :class:`~quest.core.schema.FunctionCall`.
"""

import json
import logging
import re
from typing import (
    Any,
    Dict,
    Optional,
)

from quest.core.schema import (
    FunctionCall,
    Interpretation,
    ModelResponse,
)

logger = logging.getLogger(__name__)

# Only a fence around the whole text; fences inside an answer are content
_FENCE = re.compile(r"```[\w-]*\s*(.*?)\s*```", re.DOTALL)
_ARG_KEYS = ("arguments", "args", "parameters")


def _loads(text: str) -> Any:
    # Models often put raw newlines inside JSON strings
    try:
        return json.loads(text, strict=False)
    except (TypeError, ValueError):
        return None


def _parse_text(response: Optional[ModelResponse]) -> Any:
    """Return the decoded JSON of the response text, or None if there is none."""
    if response is None or not response.text:
        return None
    text = response.text.strip()
    parsed = _loads(text)
    if parsed is not None:
        return parsed
    match = _FENCE.fullmatch(text)
    return _loads(match.group(1)) if match else None


def normalize_arguments(raw: Any) -> Dict[str, Any]:
    """Coerce an argument payload (object or JSON string) to a dict."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Could not decode function-call arguments: %r", raw)
            return {}
        if isinstance(parsed, dict):
            return parsed
    return {}


def normalize_function_call(raw: Any) -> Optional[FunctionCall]:
    """
    Canonicalise a function call found in model text.

    Whichever of ``arguments``, ``args`` or ``parameters`` is present (checked in that order) is
    taken as the argument object.  Calls without a name are dropped.
    """
    if isinstance(raw, FunctionCall):
        return raw
    if not isinstance(raw, dict):
        return None
    name = raw.get("name")
    if not isinstance(name, str) or not name:
        return None
    for key in _ARG_KEYS:
        if raw.get(key) is not None:
            return FunctionCall(name=name, args=normalize_arguments(raw[key]))
    return FunctionCall(name=name, args={})


def interpret(response: Optional[ModelResponse]) -> Interpretation:
    """
    Extract thoughts and the requested function call, first match wins.

    1. A native function call (thoughts are then ``None``).
    2. ``thoughts`` / ``payload.function_call`` from the (unfenced) JSON text.
    3. Nothing at all when the text is not JSON: the loop's exit signal.
    """
    if response is not None and response.function_calls:
        return Interpretation(thoughts=None, function_call=response.function_calls[0])

    parsed = _parse_text(response)
    if not isinstance(parsed, dict):
        return Interpretation()

    thoughts = parsed.get("thoughts")
    if thoughts is not None and not isinstance(thoughts, str):
        thoughts = json.dumps(thoughts, default=str)

    payload = parsed.get("payload")
    call = None
    if isinstance(payload, dict):
        call = normalize_function_call(payload.get("function_call"))
    return Interpretation(thoughts=thoughts or None, function_call=call)


def extract_final_text(response: Optional[ModelResponse]) -> str:
    """
    Return the user-facing answer carried by *response*.

    For a JSON object this is ``payload.text`` (or a top-level ``text``), else ``""``.  Any other
    text is the answer itself and is returned stripped.  An empty string means "no answer";
    callers must treat it as a cue to recover, never as a valid reply.
    """
    if response is None or not response.text:
        return ""

    parsed = _parse_text(response)
    if not isinstance(parsed, dict):
        # Prose, or a bare JSON scalar such as a quoted title
        return response.text.strip()

    payload = parsed.get("payload")
    if isinstance(payload, dict) and isinstance(payload.get("text"), str) and payload["text"]:
        return payload["text"].strip()
    if isinstance(parsed.get("text"), str):
        return parsed["text"].strip()
    return ""
