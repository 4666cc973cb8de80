# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Rich Blocks - cursor-sensitive Return/Tab handling for block-structured rich text
"""

from .model import (
    NO_MATCH,
    Block,
    BlockType,
    Document,
    EditCommandResolver,
    InlineStyle,
    Key,
    KeyEvent,
    Selection,
    Snapshot,
)
from .session import EditorSession, HandleResult

__all__ = [
    "NO_MATCH", "Block", "BlockType", "Document", "EditCommandResolver", "InlineStyle",
    "Key", "KeyEvent", "Selection", "Snapshot", "EditorSession", "HandleResult",
]
