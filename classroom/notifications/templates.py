"""Notification text, kept in messages.yaml and filled with str.format."""

from functools import lru_cache
from pathlib import Path

import yaml

MESSAGES_PATH = Path(__file__).parent / "messages.yaml"


@lru_cache(maxsize=1)
def load_templates() -> dict:
    with MESSAGES_PATH.open(encoding="utf-8") as f:
        return yaml.safe_load(f)


def get_message(message_type: str, part: str, context: dict) -> str:
    """
    Render one part ("email_subject", "email_body") of a message type.

    Raises:
        KeyError: unknown type or part, or a placeholder missing from context
    """
    return load_templates()[message_type][part].format(**context)
