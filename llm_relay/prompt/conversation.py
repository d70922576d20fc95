"""Shape checks for a conversation before it is sent upstream."""

from llm_relay.providers.errors import InvalidRequestError

ROLES = ("user", "assistant")
BLOCK_TYPES = ("text", "image", "tool_use", "tool_result")

# Block types each role may not carry
_FORBIDDEN = {
    "user": "tool_use",
    "assistant": "tool_result",
}


def validate_conversation(messages: list) -> None:
    """Raise InvalidRequestError if ``messages`` is not a valid conversation."""
    if not isinstance(messages, list):
        raise InvalidRequestError("messages must be a list")

    for index, message in enumerate(messages):
        if not isinstance(message, dict):
            raise InvalidRequestError(f"messages[{index}] must be an object")

        role = message.get("role")
        if role not in ROLES:
            raise InvalidRequestError(f"messages[{index}].role must be one of {ROLES}, got {role!r}")

        content = message.get("content")
        if isinstance(content, str):
            continue
        if not isinstance(content, list):
            raise InvalidRequestError(f"messages[{index}].content must be a string or a list of blocks")

        for block_index, block in enumerate(content):
            block_type = block.get("type") if isinstance(block, dict) else None
            if block_type not in BLOCK_TYPES:
                raise InvalidRequestError(
                    f"messages[{index}].content[{block_index}] has unsupported type {block_type!r}"
                )
            if block_type == _FORBIDDEN[role]:
                raise InvalidRequestError(
                    f"messages[{index}]: {role} messages cannot contain {block_type} blocks"
                )
