"""Shared LLM utilities."""

from typing import Any


def parse_llm_response(content: Any) -> str:
    """Parse LLM response content, handling structured content blocks.

    Gemini and Anthropic models may return a list of content blocks
    instead of a plain string.

    Args:
        content: Raw response content from LLM

    Returns:
        Parsed string content
    """
    if isinstance(content, str):
        return content
    elif isinstance(content, list):
        if not content:
            return ""
        # [{'type': 'text', 'text': '...'}]
        text_parts = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                text_parts.append(item["text"])
            elif isinstance(item, str):
                text_parts.append(item)
        return "".join(text_parts) if text_parts else str(content)
    return str(content)
