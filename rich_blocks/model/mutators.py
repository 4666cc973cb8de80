# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Block mutators: pure transformation primitives over Snapshots.

Every function takes a Snapshot (or a Document and Selection) and returns a
new value. Callers that have already checked a precondition get an
InvariantViolationError if it does not actually hold, rather than a
silently corrupted document.

Functions returning ``Snapshot`` return the *same* snapshot object when the
requested change is a no-op, so callers can detect "nothing happened" with an
identity check.
"""

import logging
from typing import FrozenSet, Iterable, Optional, Tuple

from ..errors import InvariantViolationError
from .document import (
    EMPTY_STYLE,
    Block,
    BlockType,
    ChangeType,
    CharacterMetadata,
    Document,
    InlineStyle,
    Selection,
    Snapshot,
    generate_key,
)

logger = logging.getLogger(__name__)


###############################################################################
# Range primitives

def remove_range(document: Document, selection: Selection) -> Tuple[Document, Selection]:
    """
    Delete the selected range, pulling the text after it up to its start

    Blocks strictly inside the range and the end block are dropped; the start
    block keeps its key, type and depth.

    Args:
        document: Document to edit
        selection: Range to remove (collapsed selections are returned as is)

    Returns:
        (new document, collapsed selection at the start of the removed range)
    """
    selection.validate(document)
    start_key, start_offset = selection.start_key, selection.start_offset
    end_key, end_offset = selection.end_key, selection.end_offset
    cursor = Selection.collapsed(start_key, start_offset)
    if selection.is_collapsed:
        return document, cursor

    start_block = document.get_block(start_key)
    end_block = document.get_block(end_key)
    merged = start_block.with_content(
        start_block.text[:start_offset] + end_block.text[end_offset:],
        start_block.characters[:start_offset] + end_block.characters[end_offset:],
    )
    doomed = [block.key for block in document.blocks_between(start_key, end_key)[1:]]
    new_document = document.replace_blocks(merged)
    if doomed:
        new_document = new_document.remove_blocks(doomed)
    return new_document, cursor


def insert_text(
    document: Document,
    selection: Selection,
    text: str,
    style: Iterable[InlineStyle] = EMPTY_STYLE,
    entity: Optional[str] = None,
) -> Tuple[Document, Selection]:
    """
    Insert ``text`` at a collapsed selection with the given style and entity

    Returns:
        (new document, collapsed selection right after the inserted text)

    Raises:
        InvariantViolationError: If the selection is not collapsed
    """
    if not selection.is_collapsed:
        raise InvariantViolationError("insert_text requires a collapsed selection; remove the range first")
    selection.validate(document)
    block = document.get_block(selection.start_key)
    offset = selection.start_offset
    metadata = CharacterMetadata(frozenset(style), entity)
    updated = block.with_content(
        block.text[:offset] + text + block.text[offset:],
        block.characters[:offset] + (metadata,) * len(text) + block.characters[offset:],
    )
    return document.replace_blocks(updated), Selection.collapsed(block.key, offset + len(text))


def current_inline_style(snapshot: Snapshot) -> FrozenSet[InlineStyle]:
    """
    Style the next typed character would take

    The pending override wins. For a collapsed selection the style comes from
    the character before the cursor, then from the first character at offset
    0. For a range it comes from the first selected character, then from the
    character before a range starting at the end of its block. Otherwise the
    last character of the nearest previous non-empty block decides.
    """
    if snapshot.inline_style_override is not None:
        return snapshot.inline_style_override
    selection = snapshot.selection
    block = snapshot.cursor_block
    offset = selection.start_offset
    if selection.is_collapsed:
        if offset > 0:
            return block.inline_style_at(offset - 1)
        if block.length:
            return block.inline_style_at(0)
    else:
        if offset < block.length:
            return block.inline_style_at(offset)
        if offset > 0:
            return block.inline_style_at(offset - 1)
    document = snapshot.document
    for previous in reversed(document.blocks[:document.index_of(block.key)]):
        if previous.length:
            return previous.inline_style_at(previous.length - 1)
    return EMPTY_STYLE


###############################################################################
# Soft newline

def insert_soft_newline(snapshot: Snapshot) -> Snapshot:
    """
    Insert a literal newline inside the current block

    A collapsed cursor inserts the newline with the current inline style. A
    range is removed first and the newline takes the style found at the
    resulting offset. The newline never carries an entity.
    """
    selection = snapshot.selection
    if selection.is_collapsed:
        style = current_inline_style(snapshot)
        document, cursor = insert_text(snapshot.document, selection, "\n", style)
    else:
        document, cursor = remove_range(snapshot.document, selection)
        block = document.get_block(cursor.start_key)
        document, cursor = insert_text(document, cursor, "\n", block.inline_style_at(cursor.start_offset))
    return snapshot.push(document, cursor, ChangeType.INSERT_FRAGMENT)


###############################################################################
# Block type / depth

def change_block_type(snapshot: Snapshot, block_key: str, new_type: BlockType) -> Snapshot:
    block = snapshot.document.get_block(block_key)
    if block.type == new_type:
        return snapshot
    document = snapshot.document.replace_blocks(block.with_type(new_type))
    return snapshot.push(document, snapshot.selection, ChangeType.CHANGE_BLOCK_TYPE)


def change_block_depth(snapshot: Snapshot, block_key: str, new_depth: int) -> Snapshot:
    if new_depth < 0:
        raise InvariantViolationError(f"Depth must be non-negative, got {new_depth}")
    block = snapshot.document.get_block(block_key)
    if block.depth == new_depth:
        return snapshot
    document = snapshot.document.replace_blocks(block.with_depth(new_depth))
    return snapshot.push(document, snapshot.selection, ChangeType.ADJUST_DEPTH)


def exit_list_item(snapshot: Snapshot) -> Snapshot:
    """
    End a list from an empty list item

    At depth 0 the item becomes an unstyled block; deeper items move one level
    out. Key, text and selection stay the same.

    Raises:
        InvariantViolationError: If the cursor is not collapsed in an empty list item
    """
    selection = snapshot.selection
    block = snapshot.cursor_block
    if not selection.is_collapsed or not block.is_list_item or block.length != 0:
        raise InvariantViolationError(
            f"exit_list_item needs a collapsed cursor in an empty list item, got {block.type.value} "
            f"of length {block.length}"
        )
    if block.depth == 0:
        return change_block_type(snapshot, block.key, BlockType.UNSTYLED)
    return change_block_depth(snapshot, block.key, block.depth - 1)


def insert_block_after(snapshot: Snapshot, block_key: str, new_type: BlockType = BlockType.UNSTYLED) -> Snapshot:
    """
    Insert an empty block right after ``block_key`` and put the cursor in it

    Args:
        snapshot: Current snapshot
        block_key: Key of the block to insert after
        new_type: Type of the new block

    Returns:
        Snapshot tagged ``split-block``
    """
    document = snapshot.document
    new_block = Block(key=generate_key(document.keys), type=new_type)
    new_document = document.insert_after(block_key, new_block)
    logger.debug(f"Inserted {new_type.value} block {new_block.key} after {block_key}")
    return snapshot.push(new_document, Selection.collapsed(new_block.key, 0), ChangeType.SPLIT_BLOCK)


def split_after(snapshot: Snapshot) -> Snapshot:
    """
    Start a fresh unstyled block after a special block (header, code block)

    Raises:
        InvariantViolationError: If the cursor is not collapsed at the end of
            a block that is neither unstyled nor a list item
    """
    selection = snapshot.selection
    block = snapshot.cursor_block
    if (
        not selection.is_collapsed
        or block.is_list_item
        or block.type == BlockType.UNSTYLED
        or selection.start_offset != block.length
    ):
        raise InvariantViolationError(
            f"split_after needs the cursor at the end of a special block, got {block.type.value} "
            f"at offset {selection.start_offset}/{block.length}"
        )
    return insert_block_after(snapshot, block.key, BlockType.UNSTYLED)


def adjust_depth(snapshot: Snapshot, outdent: bool, max_depth: int) -> Snapshot:
    """
    Indent or outdent every list item touched by the selection

    Depths are clamped to [0, max_depth]. Non-list blocks inside the
    selection are left alone.

    Args:
        snapshot: Current snapshot
        outdent: True for Shift+Tab
        max_depth: Deepest allowed nesting level

    Returns:
        Snapshot tagged ``adjust-depth``, or the same snapshot when no depth changes
    """
    if max_depth < 0:
        raise ValueError(f"max_depth must be non-negative, got {max_depth}")
    selection = snapshot.selection
    updated = []
    for block in snapshot.document.blocks_between(selection.start_key, selection.end_key):
        if not block.is_list_item:
            continue
        new_depth = max(0, block.depth - 1) if outdent else min(max_depth, block.depth + 1)
        if new_depth != block.depth:
            updated.append(block.with_depth(new_depth))
    if not updated:
        return snapshot
    document = snapshot.document.replace_blocks(*updated)
    return snapshot.push(document, selection, ChangeType.ADJUST_DEPTH)


###############################################################################
# Toolbar toggles

def current_block_type(snapshot: Snapshot) -> BlockType:
    return snapshot.cursor_block.type


def toggle_block_type(snapshot: Snapshot, block_type: BlockType) -> Snapshot:
    """
    Switch every block in the selection to ``block_type``, or back to unstyled

    The target is unstyled when the start block already has ``block_type``.
    Every switched block is reset to depth 0. A trailing block that the
    selection only reaches at offset 0 is left alone and the selection is
    pulled back to the end of the block before it.
    """
    block_type = BlockType(block_type)
    document = snapshot.document
    selection = snapshot.selection
    if selection.start_key != selection.end_key and selection.end_offset == 0:
        previous = document.block_before(selection.end_key)
        selection = Selection(selection.start_key, selection.start_offset, previous.key, previous.length)

    target = BlockType.UNSTYLED if snapshot.cursor_block.type == block_type else block_type
    updated = [
        block.with_type(target).with_depth(0)
        for block in document.blocks_between(selection.start_key, selection.end_key)
    ]
    document = document.replace_blocks(*updated)
    if document is snapshot.document:
        return snapshot
    return snapshot.push(document, selection, ChangeType.CHANGE_BLOCK_TYPE)


def toggle_inline_style(snapshot: Snapshot, style: InlineStyle) -> Snapshot:
    """
    Toggle ``style`` on the selected characters

    On a collapsed selection only the pending override changes. On a range the
    style is removed when the current inline style (see
    :func:`current_inline_style`) has it and added otherwise.
    """
    style = InlineStyle(style)
    selection = snapshot.selection
    current = current_inline_style(snapshot)
    if selection.is_collapsed:
        return snapshot.with_override(current - {style} if style in current else current | {style})

    document = snapshot.document
    covered = []
    for block in document.blocks_between(selection.start_key, selection.end_key):
        start = selection.start_offset if block.key == selection.start_key else 0
        end = selection.end_offset if block.key == selection.end_key else block.length
        covered.append((block, start, end))

    if not any(end > start for _, start, end in covered):
        return snapshot
    remove = style in current

    updated = []
    for block, start, end in covered:
        restyled = tuple(
            char.with_style(char.style - {style} if remove else char.style | {style})
            for char in block.characters[start:end]
        )
        updated.append(block.with_content(
            block.text,
            block.characters[:start] + restyled + block.characters[end:],
        ))
    return snapshot.push(document.replace_blocks(*updated), selection, ChangeType.CHANGE_INLINE_STYLE)


def toggle_code(snapshot: Snapshot) -> Snapshot:
    """
    Toolbar CODE button

    A collapsed cursor or a selection spanning blocks toggles the code-block
    type; a range inside one block toggles the CODE inline style.
    """
    selection = snapshot.selection
    if selection.is_collapsed or selection.anchor_key != selection.focus_key:
        return toggle_block_type(snapshot, BlockType.CODE_BLOCK)
    return toggle_inline_style(snapshot, InlineStyle.CODE)
