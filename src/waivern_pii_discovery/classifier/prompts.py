"""Prompt contract for the probabilistic PII classifier."""

from __future__ import annotations

from waivern_pii_discovery.taxonomy import NO_PII_TYPE, PII_TYPES_BY_CATEGORY

_MAX_PROMPT_VALUE_CHARS = 3000


def _taxonomy_listing() -> str:
    lines = [
        f"   - {category.value.lower()}: {', '.join(pii_types)}"
        for category, pii_types in PII_TYPES_BY_CATEGORY.items()
    ]
    lines.append(f"   - {NO_PII_TYPE}")
    return "\n".join(lines)


SYSTEM_INSTRUCTION = f"""You are a PII classifier for Indian DPDP Act compliance.

CRITICAL RULES:
- Return ONLY one valid minified JSON object
- No explanations, no markdown, no text outside the JSON

Classification rules:
1. Ignore standard identifiers (integers, UUIDs) unless they identify a person.
2. Do not classify Aadhaar, PAN or bank numbers when they look like plain numbers
   without supporting context.
3. If unstructured text contains personal data, identify the most sensitive type.
4. Allowed PII types (use the type tag exactly):
{_taxonomy_listing()}
5. confidence is a number from 0.0 to 1.0 expressing how sure you are.

Response format:
{{"type": "<type tag>", "confidence": <number>, "reason": "<short explanation>"}}"""


def build_field_prompt(field_name: str, sample_value: str) -> str:
    """Build the user text for classifying one sampled value of a field.

    Args:
        field_name: Column, key, header or segment label
        sample_value: Sampled value or text segment

    Returns:
        User text to send alongside ``SYSTEM_INSTRUCTION``

    """
    value = sample_value[:_MAX_PROMPT_VALUE_CHARS]
    return f'Column Name: "{field_name}"\nSample Value: "{value}"'
