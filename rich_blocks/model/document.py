# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Immutable block-structured document model.

DOCUMENT STRUCTURE:
==================

Document
  └── blocks: Tuple[Block, ...]     (reading order, never empty)
        ├── key                     (unique within the document)
        ├── type                    (BlockType)
        ├── text
        ├── characters              (one CharacterMetadata per character)
        └── depth                   (list nesting level)

Snapshot = (Document, Selection, ChangeType) [+ pending inline style override]

Nothing in this module mutates in place. Every "update" helper returns a new
value and leaves the receiver untouched, so a Snapshot handed to a renderer
stays valid while the next edit is computed.

The key -> index lookup of a Document is rebuilt on construction; it is never
patched afterwards because the Document itself never changes.
"""

import random
import string
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from ..errors import (
    DocumentIntegrityError,
    InvariantViolationError,
    KeyCollisionError,
    SelectionError,
)


class BlockType(str, Enum):
    """Block types understood by the editor"""
    UNSTYLED = "unstyled"
    HEADER_ONE = "header-one"
    HEADER_TWO = "header-two"
    HEADER_THREE = "header-three"
    HEADER_FOUR = "header-four"
    HEADER_FIVE = "header-five"
    HEADER_SIX = "header-six"
    UNORDERED_LIST_ITEM = "unordered-list-item"
    ORDERED_LIST_ITEM = "ordered-list-item"
    CODE_BLOCK = "code-block"


# Index + 1 is the header level
HEADER_TYPES: Tuple[BlockType, ...] = (
    BlockType.HEADER_ONE,
    BlockType.HEADER_TWO,
    BlockType.HEADER_THREE,
    BlockType.HEADER_FOUR,
    BlockType.HEADER_FIVE,
    BlockType.HEADER_SIX,
)

LIST_ITEM_TYPES: FrozenSet[BlockType] = frozenset({
    BlockType.UNORDERED_LIST_ITEM,
    BlockType.ORDERED_LIST_ITEM,
})


class InlineStyle(str, Enum):
    """Inline style tags carried by individual characters"""
    BOLD = "BOLD"
    ITALIC = "ITALIC"
    UNDERLINE = "UNDERLINE"
    CODE = "CODE"
    STRIKETHROUGH = "STRIKETHROUGH"


class ChangeType(str, Enum):
    """Tag describing which edit produced a snapshot"""
    UNCHANGED = "unchanged"
    INSERT_FRAGMENT = "insert-fragment"
    CHANGE_BLOCK_TYPE = "change-block-type"
    ADJUST_DEPTH = "adjust-depth"
    SPLIT_BLOCK = "split-block"
    CHANGE_INLINE_STYLE = "change-inline-style"
    REMOVE_RANGE = "remove-range"


EMPTY_STYLE: FrozenSet[InlineStyle] = frozenset()

KEY_ALPHABET = string.ascii_letters + string.digits
KEY_LENGTH = 8


def generate_key(existing: Iterable[str] = ()) -> str:
    """
    Generate a random block key that is not in ``existing``

    Args:
        existing: Keys already in use

    Returns:
        New alphanumeric key
    """
    seen = set(existing)
    while True:
        key = ''.join(random.choices(KEY_ALPHABET, k=KEY_LENGTH))
        if key not in seen:
            return key


def is_list_item_type(block_type: BlockType) -> bool:
    return block_type in LIST_ITEM_TYPES


@dataclass(frozen=True)
class CharacterMetadata:
    """Inline styles and entity reference of a single character"""
    style: FrozenSet[InlineStyle] = EMPTY_STYLE
    entity: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "style", frozenset(InlineStyle(s) for s in self.style))

    def with_style(self, style: Iterable[InlineStyle]) -> "CharacterMetadata":
        return replace(self, style=frozenset(style))

    def without_entity(self) -> "CharacterMetadata":
        return replace(self, entity=None)


PLAIN = CharacterMetadata()


@dataclass(frozen=True)
class StyleRun:
    """Maximal range [start, end) of characters sharing style and entity"""
    start: int
    end: int
    style: FrozenSet[InlineStyle]
    entity: Optional[str] = None


@dataclass(frozen=True)
class Block:
    """
    One paragraph-like unit of a document.

    ``characters`` runs parallel to ``text``. When a block is built with text
    but no character metadata, every character gets the plain (unstyled)
    metadata.
    """
    key: str
    type: BlockType = BlockType.UNSTYLED
    text: str = ""
    characters: Tuple[CharacterMetadata, ...] = ()
    depth: int = 0

    def __post_init__(self):
        object.__setattr__(self, "type", BlockType(self.type))
        characters = tuple(self.characters)
        if not characters and self.text:
            characters = (PLAIN,) * len(self.text)
        if len(characters) != len(self.text):
            raise InvariantViolationError(
                f"Block {self.key}: {len(characters)} character entries for text of length {len(self.text)}"
            )
        if self.depth < 0:
            raise InvariantViolationError(f"Block {self.key}: negative depth {self.depth}")
        object.__setattr__(self, "characters", characters)

    @property
    def length(self) -> int:
        return len(self.text)

    @property
    def is_list_item(self) -> bool:
        return is_list_item_type(self.type)

    def inline_style_at(self, offset: int) -> FrozenSet[InlineStyle]:
        """Style of the character at ``offset``, empty past the end of the text"""
        if 0 <= offset < len(self.characters):
            return self.characters[offset].style
        return EMPTY_STYLE

    def entity_at(self, offset: int) -> Optional[str]:
        if 0 <= offset < len(self.characters):
            return self.characters[offset].entity
        return None

    @property
    def style_runs(self) -> List[StyleRun]:
        """
        Group characters into runs of identical style and entity

        Returns:
            List of StyleRun covering the whole text, empty for empty blocks
        """
        runs: List[StyleRun] = []
        start = 0
        for offset in range(1, len(self.characters) + 1):
            if offset == len(self.characters) or self.characters[offset] != self.characters[start]:
                current = self.characters[start]
                runs.append(StyleRun(start, offset, current.style, current.entity))
                start = offset
        return runs

    def with_content(self, text: str, characters: Iterable[CharacterMetadata]) -> "Block":
        return replace(self, text=text, characters=tuple(characters))

    def with_type(self, block_type: BlockType) -> "Block":
        return replace(self, type=BlockType(block_type))

    def with_depth(self, depth: int) -> "Block":
        return replace(self, depth=depth)

    def content_key(self) -> Tuple:
        """Everything but the key, used for structural comparison"""
        return (self.type, self.text, self.characters, self.depth)


@dataclass(frozen=True)
class Document:
    """
    Ordered, non-empty sequence of blocks with unique keys
    """
    blocks: Tuple[Block, ...]
    _index: Dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        blocks = tuple(self.blocks)
        if not blocks:
            raise DocumentIntegrityError("Document must contain at least one block")
        index: Dict[str, int] = {}
        for position, block in enumerate(blocks):
            if block.key in index:
                raise KeyCollisionError(f"Duplicate block key: {block.key}")
            index[block.key] = position
        object.__setattr__(self, "blocks", blocks)
        object.__setattr__(self, "_index", index)

    @classmethod
    def create(cls, *blocks: Block) -> "Document":
        return cls(tuple(blocks))

    @classmethod
    def empty(cls) -> "Document":
        """Document holding a single empty unstyled block"""
        return cls((Block(key=generate_key()),))

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks)

    @property
    def keys(self) -> List[str]:
        return [block.key for block in self.blocks]

    @property
    def first_block(self) -> Block:
        return self.blocks[0]

    @property
    def last_block(self) -> Block:
        return self.blocks[-1]

    def has_block(self, key: str) -> bool:
        return key in self._index

    def index_of(self, key: str) -> int:
        try:
            return self._index[key]
        except KeyError:
            raise SelectionError(f"Block {key} not found in document") from None

    def get_block(self, key: str) -> Block:
        return self.blocks[self.index_of(key)]

    def block_before(self, key: str) -> Optional[Block]:
        position = self.index_of(key)
        return self.blocks[position - 1] if position > 0 else None

    def blocks_between(self, start_key: str, end_key: str) -> List[Block]:
        """Blocks from ``start_key`` to ``end_key``, both included"""
        start = self.index_of(start_key)
        end = self.index_of(end_key)
        if end < start:
            raise SelectionError(f"Block {end_key} precedes block {start_key}")
        return list(self.blocks[start:end + 1])

    def replace_blocks(self, *updated: Block) -> "Document":
        """
        Return a document where the given blocks replace the ones with the same key

        Args:
            updated: Blocks whose keys already exist in the document

        Returns:
            New Document, or self when nothing differs
        """
        blocks = list(self.blocks)
        changed = False
        for block in updated:
            position = self.index_of(block.key)
            if blocks[position] != block:
                blocks[position] = block
                changed = True
        return Document(tuple(blocks)) if changed else self

    def insert_after(self, key: str, block: Block) -> "Document":
        if block.key in self._index:
            raise KeyCollisionError(f"Block key {block.key} already used in document")
        position = self.index_of(key) + 1
        return Document(self.blocks[:position] + (block,) + self.blocks[position:])

    def remove_blocks(self, keys: Iterable[str]) -> "Document":
        doomed = set(keys)
        for key in doomed:
            self.index_of(key)
        return Document(tuple(block for block in self.blocks if block.key not in doomed))

    def same_content(self, other: "Document") -> bool:
        """Structural equality ignoring block keys"""
        return len(self) == len(other) and all(
            mine.content_key() == theirs.content_key()
            for mine, theirs in zip(self.blocks, other.blocks)
        )

    @property
    def plain_text(self) -> str:
        return "\n".join(block.text for block in self.blocks)


@dataclass(frozen=True)
class Selection:
    """Cursor or range over the document, anchor is where it started"""
    anchor_key: str
    anchor_offset: int
    focus_key: str
    focus_offset: int
    is_backward: bool = False

    @classmethod
    def collapsed(cls, key: str, offset: int = 0) -> "Selection":
        return cls(key, offset, key, offset, False)

    @property
    def is_collapsed(self) -> bool:
        return self.anchor_key == self.focus_key and self.anchor_offset == self.focus_offset

    @property
    def start_key(self) -> str:
        return self.focus_key if self.is_backward else self.anchor_key

    @property
    def start_offset(self) -> int:
        return self.focus_offset if self.is_backward else self.anchor_offset

    @property
    def end_key(self) -> str:
        return self.anchor_key if self.is_backward else self.focus_key

    @property
    def end_offset(self) -> int:
        return self.anchor_offset if self.is_backward else self.focus_offset

    def validate(self, document: Document) -> None:
        """
        Check that both ends of the selection point inside ``document``

        Raises:
            SelectionError: If a key is missing or an offset is out of range
        """
        for key, offset in ((self.anchor_key, self.anchor_offset), (self.focus_key, self.focus_offset)):
            block = document.get_block(key)
            if not 0 <= offset <= block.length:
                raise SelectionError(
                    f"Offset {offset} outside block {key} of length {block.length}"
                )
        start, end = document.index_of(self.start_key), document.index_of(self.end_key)
        if start > end or (start == end and self.start_offset > self.end_offset):
            raise SelectionError("Selection start comes after its end; check is_backward")


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable (document, selection, change_type) triple.

    ``inline_style_override`` is the style set the next inserted character
    takes when the user toggled a style on a collapsed selection. Pushing a
    new document clears it.
    """
    document: Document
    selection: Selection
    change_type: ChangeType = ChangeType.UNCHANGED
    inline_style_override: Optional[FrozenSet[InlineStyle]] = None

    def __post_init__(self):
        object.__setattr__(self, "change_type", ChangeType(self.change_type))
        self.selection.validate(self.document)

    @classmethod
    def create(cls, document: Document, selection: Optional[Selection] = None) -> "Snapshot":
        """Snapshot with the cursor at the start of the first block by default"""
        if selection is None:
            selection = Selection.collapsed(document.first_block.key, 0)
        return cls(document, selection)

    @property
    def cursor_block(self) -> Block:
        """Block holding the start of the selection"""
        return self.document.get_block(self.selection.start_key)

    def push(self, document: Document, selection: Selection, change_type: ChangeType) -> "Snapshot":
        return Snapshot(document, selection, change_type)

    def with_override(self, style: FrozenSet[InlineStyle]) -> "Snapshot":
        return replace(self, change_type=ChangeType.CHANGE_INLINE_STYLE, inline_style_override=frozenset(style))
