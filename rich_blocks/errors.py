# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Exception hierarchy for rich_blocks.

A rule that does not apply is never reported through an exception: the
resolver returns ``NO_MATCH`` instead. Everything raised from here is a broken
contract between the resolver, the mutators and the document model.
"""


class RichBlocksError(Exception):
    """Base class for all rich_blocks errors"""


class InvariantViolationError(RichBlocksError):
    """A mutator was called with a precondition its caller should have checked"""


class SelectionError(InvariantViolationError):
    """Selection references a block or offset that is not in the document"""


class DocumentIntegrityError(InvariantViolationError):
    """Document structure is invalid (e.g. it has no blocks)"""


class KeyCollisionError(DocumentIntegrityError):
    """Two blocks in one document share the same key"""


class MarkdownConversionError(RichBlocksError):
    """Markdown source could not be converted into a document"""
