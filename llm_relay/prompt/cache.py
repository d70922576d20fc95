"""Prompt-cache breakpoint placement.

Only the last two user turns get a cache breakpoint. That keeps the number
of breakpoints per request bounded while the most recent turns, where a
follow-up request resumes, stay warm. The system prompt is marked
separately whenever the model supports caching.
"""

from typing import NamedTuple

# Copied into each marked block, never shared
EPHEMERAL = {"type": "ephemeral"}


class CacheMarker(NamedTuple):
    message_index: int
    block_index: int | None  # None: plain-string content, mark the whole message


def plan_cache_breakpoints(messages: list[dict]) -> frozenset[CacheMarker]:
    """Pick the cache markers for a conversation.

    Returns at most two markers: one on the last user message and one on the
    second-to-last. For block content the marker sits on the final block.
    """
    last = second_last = None
    for index, message in enumerate(messages):
        if message.get("role") == "user":
            second_last, last = last, index

    markers = set()
    for index in (last, second_last):
        if index is None:
            continue
        content = messages[index].get("content")
        if isinstance(content, str):
            markers.add(CacheMarker(index, None))
        elif content:
            markers.add(CacheMarker(index, len(content) - 1))
    return frozenset(markers)


def apply_cache_markers(messages: list[dict], markers: frozenset[CacheMarker]) -> list[dict]:
    """Return a copy of ``messages`` with ``cache_control`` set at each marker.

    Plain-string content is rewritten to a single marked text block. The
    input conversation is left untouched.
    """
    by_message = {marker.message_index: marker.block_index for marker in markers}
    result = []
    for index, message in enumerate(messages):
        if index not in by_message:
            result.append(message)
            continue

        block_index = by_message[index]
        if block_index is None:
            content = [{"type": "text", "text": message["content"], "cache_control": dict(EPHEMERAL)}]
        else:
            content = [
                {**block, "cache_control": dict(EPHEMERAL)} if i == block_index else block
                for i, block in enumerate(message["content"])
            ]
        result.append({**message, "content": content})
    return result


def system_blocks(system_prompt: str, prompt_cache: bool) -> list[dict]:
    """Build the ``system`` field, marking it for caching when supported."""
    block = {"type": "text", "text": system_prompt}
    if prompt_cache:
        block["cache_control"] = dict(EPHEMERAL)
    return [block]
