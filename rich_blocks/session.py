# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
EditorSession: holds the current snapshot for a host UI.

SESSION FLOW:
============

host key event
    → EditorSession.handle_key()
        → EditCommandResolver.resolve()      (NO_MATCH → "not-handled")
        → EditorSession.commit(snapshot)
            → MarkdownConverter.serialize()
            → Loro text container "content"  (persistence / sync)
            → event_callback("document_changed", {...})

The resolver and the mutators are pure; this class owns the only mutable
state, the reference to the current snapshot. Commits that only move the
selection are stored without exporting anything.

The markdown mirror uses wholesale replacement of the "content" text
container, so a session must own its LoroDoc; it is not meant to share one
with concurrent collaborators.
"""

import logging
import time
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, Optional

import loro
from loro import ExportMode, LoroDoc

from .model.document import BlockType, ChangeType, InlineStyle, Selection, Snapshot
from .model.markdown_converter import MarkdownConverter
from .model.mutators import toggle_block_type, toggle_code, toggle_inline_style
from .model.resolver import DEFAULT_MAX_DEPTH, EditCommandResolver, KeyEvent, NoMatch

logger = logging.getLogger(__name__)

CONTENT_CONTAINER = "content"
METADATA_CONTAINER = "root"


class SessionEventType(Enum):
    """Event types sent to the session event callback"""
    DOCUMENT_CHANGED = "document_changed"


class HandleResult(str, Enum):
    """Answer given back to the host key binding"""
    HANDLED = "handled"
    NOT_HANDLED = "not-handled"


class EditorSession:
    """
    Session adapter between a host editor and the edit command resolver

    Args:
        snapshot: Initial snapshot
        max_depth: Deepest list nesting level reachable with Tab
        doc_id: Identifier passed along with every event
        event_callback: Optional callable(event_type, data) notified on document changes
        loro_doc: Optional existing LoroDoc to mirror committed documents into
    """

    def __init__(
        self,
        snapshot: Snapshot,
        max_depth: int = DEFAULT_MAX_DEPTH,
        doc_id: str = CONTENT_CONTAINER,
        event_callback: Optional[Callable[[str, Dict[str, Any]], None]] = None,
        loro_doc: Optional[LoroDoc] = None,
    ):
        self.doc_id = doc_id
        self.resolver = EditCommandResolver(max_depth)
        self.converter = MarkdownConverter()
        self.loro_doc = loro_doc if loro_doc is not None else loro.LoroDoc()
        self._event_callback = event_callback
        self._snapshot = snapshot
        self._markdown = ""
        self._commit_count = 0

        self._sync_to_loro()
        logger.info(f"Initialized EditorSession {doc_id} with {len(snapshot.document)} blocks")

    @classmethod
    def from_markdown(cls, text: str, **kwargs) -> "EditorSession":
        """Create a session from markdown source, cursor at the start of the document"""
        return cls(Snapshot.create(MarkdownConverter().parse(text)), **kwargs)

    @classmethod
    def from_loro_snapshot(cls, data: bytes, **kwargs) -> "EditorSession":
        """
        Restore a session from bytes produced by ``get_loro_snapshot``

        Args:
            data: Loro snapshot bytes
            kwargs: Passed on to the constructor

        Returns:
            Session whose document is the markdown stored in the snapshot
        """
        doc = loro.LoroDoc()
        doc.import_(data)
        text = doc.get_text(CONTENT_CONTAINER).to_string()
        return cls(Snapshot.create(MarkdownConverter().parse(text)), loro_doc=doc, **kwargs)

    ###########################################################################
    # Snapshot access

    def current(self) -> Snapshot:
        return self._snapshot

    @property
    def markdown(self) -> str:
        """Markdown export of the last committed document"""
        return self._markdown

    @property
    def commit_count(self) -> int:
        """Number of commits that changed the document"""
        return self._commit_count

    def commit(self, snapshot: Snapshot) -> bool:
        """
        Make ``snapshot`` the current one

        Args:
            snapshot: Snapshot produced by a mutator or by the host

        Returns:
            True if the document changed (and was exported), False for
            selection-only commits
        """
        previous = self._snapshot
        self._snapshot = snapshot
        if snapshot.document is previous.document:
            return False

        self._commit_count += 1
        markdown = self._sync_to_loro()
        logger.debug(f"Committed {snapshot.change_type.value} to {self.doc_id}:\n{markdown}")
        self._emit_event(SessionEventType.DOCUMENT_CHANGED, {
            "change_type": snapshot.change_type.value,
            "block_count": len(snapshot.document),
            "markdown": markdown,
        })
        return True

    def move_cursor(self, block_key: str, offset: int) -> Snapshot:
        """Collapse the selection at ``offset`` in ``block_key``"""
        snapshot = replace(
            self._snapshot,
            selection=Selection.collapsed(block_key, offset),
            change_type=ChangeType.UNCHANGED,
            inline_style_override=None,
        )
        self.commit(snapshot)
        return snapshot

    def select(self, selection: Selection) -> Snapshot:
        snapshot = replace(
            self._snapshot,
            selection=selection,
            change_type=ChangeType.UNCHANGED,
            inline_style_override=None,
        )
        self.commit(snapshot)
        return snapshot

    ###########################################################################
    # Host bindings

    def handle_key(self, event: KeyEvent) -> HandleResult:
        """
        Resolve a Return/Tab key press against the current snapshot

        Returns:
            HANDLED when a rule produced a new snapshot (now committed),
            NOT_HANDLED when the host should run its default behavior
        """
        result = self.resolver.resolve(event, self._snapshot)
        if isinstance(result, NoMatch):
            return HandleResult.NOT_HANDLED
        self.commit(result)
        return HandleResult.HANDLED

    def toggle_block_type(self, block_type: BlockType) -> bool:
        result = toggle_block_type(self._snapshot, block_type)
        if result is self._snapshot:
            return False
        self.commit(result)
        return True

    def toggle_inline_style(self, style: InlineStyle) -> bool:
        """Toggle an inline style; a collapsed cursor only records the override"""
        result = toggle_inline_style(self._snapshot, style)
        if result is self._snapshot:
            return False
        self.commit(result)
        return True

    def toggle_code(self) -> bool:
        """CODE button: code-block type or CODE inline style depending on the selection"""
        result = toggle_code(self._snapshot)
        if result is self._snapshot:
            return False
        self.commit(result)
        return True

    ###########################################################################
    # Loro mirror

    def _sync_to_loro(self) -> str:
        """Replace the Loro content container with the current markdown export"""
        document = self._snapshot.document
        markdown = self.converter.serialize(document)

        text_data = self.loro_doc.get_text(CONTENT_CONTAINER)
        current_length = text_data.len_unicode
        if current_length > 0:
            text_data.delete(0, current_length)
        text_data.insert(0, markdown)

        metadata = self.loro_doc.get_map(METADATA_CONTAINER)
        metadata.insert("docId", self.doc_id)
        metadata.insert("blockCount", len(document))
        metadata.insert("lastSaved", int(time.time() * 1000))

        self.loro_doc.commit()
        self._markdown = markdown
        return markdown

    def get_loro_snapshot(self) -> bytes:
        """Export the mirrored Loro document as snapshot bytes"""
        return self.loro_doc.export(ExportMode.Snapshot())

    def _emit_event(self, event_type: SessionEventType, event_data: Dict[str, Any]) -> None:
        if self._event_callback:
            try:
                self._event_callback(event_type.value, {
                    "doc_id": self.doc_id,
                    **event_data
                })
            except Exception as e:
                logger.warning(f"Error in event callback for {self.doc_id}: {e}")

    def __repr__(self) -> str:
        return f"EditorSession(doc_id={self.doc_id!r}, blocks={len(self._snapshot.document)}, commits={self._commit_count})"
