# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

from .document import (
    Block,
    BlockType,
    ChangeType,
    CharacterMetadata,
    Document,
    InlineStyle,
    Selection,
    Snapshot,
    StyleRun,
)
from .markdown_converter import MarkdownConverter, document_to_markdown, markdown_to_document, snapshot_from_markdown
from .resolver import NO_MATCH, EditCommandResolver, Key, KeyEvent, NoMatch

__all__ = [
    'Block', 'BlockType', 'ChangeType', 'CharacterMetadata', 'Document', 'InlineStyle',
    'Selection', 'Snapshot', 'StyleRun', 'MarkdownConverter', 'document_to_markdown',
    'markdown_to_document', 'snapshot_from_markdown', 'NO_MATCH', 'EditCommandResolver',
    'Key', 'KeyEvent', 'NoMatch',
]
