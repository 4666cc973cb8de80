# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Edit command resolver: maps Return/Tab key events to block mutators.

RETURN RULES (first match wins):
===============================

1. soft-newline         shift/alt/ctrl held        -> insert_soft_newline
2. empty-list-exit      cursor in empty list item  -> exit_list_item
3. special-block-split  cursor at end of header or -> split_after
                        code block

When no rule matches the resolver answers NO_MATCH and the host runs its own
Return handling (usually splitting into a new unstyled block).

TAB:
====

Tab/Shift+Tab only act on list items and return NO_MATCH everywhere else,
including when the depth is already at its bound.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple, Tuple, Union

from .document import BlockType, Snapshot
from .mutators import adjust_depth, exit_list_item, insert_soft_newline, split_after

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 1


class Key(str, Enum):
    """Keys the resolver knows about"""
    RETURN = "return"
    TAB = "tab"


@dataclass(frozen=True)
class KeyEvent:
    """Key press with its modifier state"""
    key: Key
    shift: bool = False
    alt: bool = False
    ctrl: bool = False

    @property
    def is_soft_newline(self) -> bool:
        return self.key == Key.RETURN and (self.shift or self.alt or self.ctrl)

    @classmethod
    def parse(cls, text: str) -> "KeyEvent":
        """
        Build an event from text such as ``return``, ``shift+return`` or ``shift+tab``

        Raises:
            ValueError: If the key or a modifier is unknown
        """
        *modifiers, key = [part.strip().lower() for part in text.split("+")]
        flags = {"shift": False, "alt": False, "ctrl": False}
        for modifier in modifiers:
            if modifier not in flags:
                raise ValueError(f"Unknown modifier '{modifier}' in '{text}'")
            flags[modifier] = True
        return cls(Key(key), **flags)


class NoMatch:
    """Sentinel returned when no rule applies; falsy so ``or`` chains work"""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_MATCH"


NO_MATCH = NoMatch()

Resolution = Union[Snapshot, NoMatch]


class ReturnRule(NamedTuple):
    name: str
    predicate: Callable[[KeyEvent, Snapshot], bool]
    transform: Callable[[Snapshot], Snapshot]


def _wants_soft_newline(event: KeyEvent, snapshot: Snapshot) -> bool:
    return event.is_soft_newline


def _in_empty_list_item(event: KeyEvent, snapshot: Snapshot) -> bool:
    if not snapshot.selection.is_collapsed:
        return False
    block = snapshot.cursor_block
    return block.is_list_item and block.length == 0


def _at_end_of_special_block(event: KeyEvent, snapshot: Snapshot) -> bool:
    selection = snapshot.selection
    if not selection.is_collapsed:
        return False
    block = snapshot.cursor_block
    if block.is_list_item or block.type == BlockType.UNSTYLED:
        return False
    return selection.start_offset == block.length


RETURN_RULES: Tuple[ReturnRule, ...] = (
    ReturnRule("soft-newline", _wants_soft_newline, insert_soft_newline),
    ReturnRule("empty-list-exit", _in_empty_list_item, exit_list_item),
    ReturnRule("special-block-split", _at_end_of_special_block, split_after),
)


class EditCommandResolver:
    """
    Stateless resolver for Return and Tab

    Args:
        max_depth: Deepest list nesting level reachable with Tab
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")
        self.max_depth = max_depth
        self.return_rules = RETURN_RULES

    def resolve(self, event: KeyEvent, snapshot: Snapshot) -> Resolution:
        if event.key == Key.RETURN:
            return self.resolve_return(event, snapshot)
        if event.key == Key.TAB:
            return self.resolve_tab(event, snapshot)
        return NO_MATCH

    def resolve_return(self, event: KeyEvent, snapshot: Snapshot) -> Resolution:
        for rule in self.return_rules:
            if rule.predicate(event, snapshot):
                logger.debug(f"Return handled by rule '{rule.name}' in block {snapshot.selection.start_key}")
                return rule.transform(snapshot)
        return NO_MATCH

    def resolve_tab(self, event: KeyEvent, snapshot: Snapshot) -> Resolution:
        """Indent or outdent the list item holding the selection; ranges over several blocks never match"""
        selection = snapshot.selection
        if selection.anchor_key != selection.focus_key or not snapshot.cursor_block.is_list_item:
            return NO_MATCH
        result = adjust_depth(snapshot, outdent=event.shift, max_depth=self.max_depth)
        if result is snapshot:
            logger.debug(f"Tab left depth unchanged (max_depth={self.max_depth})")
            return NO_MATCH
        return result
