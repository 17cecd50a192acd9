"""JSON extraction utilities for LLM responses."""

import re

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def extract_json_object(llm_response: str) -> str:
    """Extract the first balanced JSON object from an LLM response.

    Models often wrap JSON in ```json``` blocks or surround it with prose.
    Brace matching is string-aware, so braces inside string values do not end
    the object early.

    Args:
        llm_response: Raw response from LLM

    Returns:
        JSON object text

    Raises:
        ValueError: If no balanced JSON object is found in the response

    """
    fenced = _FENCED_BLOCK.search(llm_response)
    candidates = [fenced.group(1), llm_response] if fenced else [llm_response]

    for candidate in candidates:
        extracted = _first_balanced_object(candidate)
        if extracted is not None:
            return extracted

    raise ValueError("No valid JSON object found in LLM response")


def _first_balanced_object(text: str) -> str | None:
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            return text[start : end + 1]
        start = text.find("{", start + 1)
    return None


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index

    return None
