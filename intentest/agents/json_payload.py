"""Extraction of the final verdict from model free text."""

import json
import re

from pydantic import ValidationError

from intentest.core.types import Verdict
from intentest.error_handling import AIError

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*?\}")


def extract_verdict(text: str) -> Verdict:
    """
    Parse the single ``{"status": ..., "reason": ...}`` object in ``text``.

    Raises:
        AIError: ``invalid-response`` when there is no object, more than one,
            or the object does not match the verdict schema
    """
    matches = JSON_OBJECT_PATTERN.findall(text or "")
    if not matches:
        raise AIError("invalid-response", "No JSON object found in response.")
    if len(matches) > 1:
        raise AIError(
            "invalid-response", "Ambiguous JSON: multiple JSON objects found."
        )

    try:
        return Verdict.model_validate(json.loads(matches[0]))
    except json.JSONDecodeError as exc:
        raise AIError(
            "invalid-response", f"Response JSON could not be parsed: {exc.msg}", cause=exc
        ) from exc
    except ValidationError as exc:
        raise AIError(
            "invalid-response", "Response JSON does not match the verdict schema.", cause=exc
        ) from exc
