# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
MarkdownConverter: Bidirectional conversion between markdown and Documents

MARKDOWN DIALECT:
================

Blocks:
    # Title ... ###### Title      header-one .. header-six
    * item / - item / + item      unordered-list-item
    1. item                       ordered-list-item
    ```                           code-block (raw text, styles dropped)
    &nbsp;                        empty unstyled block
    anything else                 unstyled paragraph

Blank lines separate blocks; consecutive list items are written without one.
Nested list items are indented to the content column of the item above them;
an item one level deeper than that gets two more spaces.

Inline:
    **bold**  _italic_ (*italic*)  ++underline++  `code`  ~~strikethrough~~
    <strong> <em> <ins> <del>     used instead of a marker CommonMark would not
                                  read back (for example ``_`` inside a word)
    <br>                          soft newline inside a block
    \\x                            literal punctuation character x
    &#32;                         whitespace at the start or end of a block

Import runs on markdown-it (CommonMark plus strikethrough and an ``++``
underline rule), so any CommonMark source can be loaded. Exported markdown
reads back to a document with the same content (keys aside). Entity
references are not exported.
"""

import logging
import re
import string
import unicodedata
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from markdown_it import MarkdownIt
from markdown_it.rules_inline.state_inline import Delimiter, StateInline
from markdown_it.token import Token

from ..errors import MarkdownConversionError
from .document import (
    HEADER_TYPES,
    Block,
    BlockType,
    CharacterMetadata,
    Document,
    InlineStyle,
    Snapshot,
    generate_key,
)

logger = logging.getLogger(__name__)

# Opening order for nested markers; code is written as a code span instead
STYLE_MARKERS: Tuple[Tuple[InlineStyle, str], ...] = (
    (InlineStyle.BOLD, "**"),
    (InlineStyle.STRIKETHROUGH, "~~"),
    (InlineStyle.UNDERLINE, "++"),
    (InlineStyle.ITALIC, "_"),
)
MARKER_FOR_STYLE: Dict[InlineStyle, str] = dict(STYLE_MARKERS)
HTML_TAG_FOR_STYLE: Dict[InlineStyle, str] = {
    InlineStyle.BOLD: "strong",
    InlineStyle.STRIKETHROUGH: "del",
    InlineStyle.UNDERLINE: "ins",
    InlineStyle.ITALIC: "em",
}

# Token tags (strong, em, s, ins) and inline HTML tags read on import
STYLE_FOR_TAG: Dict[str, InlineStyle] = {
    "strong": InlineStyle.BOLD,
    "b": InlineStyle.BOLD,
    "em": InlineStyle.ITALIC,
    "i": InlineStyle.ITALIC,
    "ins": InlineStyle.UNDERLINE,
    "u": InlineStyle.UNDERLINE,
    "s": InlineStyle.STRIKETHROUGH,
    "del": InlineStyle.STRIKETHROUGH,
    "strike": InlineStyle.STRIKETHROUGH,
    "code": InlineStyle.CODE,
}

LIST_TYPE_FOR_TOKEN: Dict[str, BlockType] = {
    "bullet_list_open": BlockType.UNORDERED_LIST_ITEM,
    "ordered_list_open": BlockType.ORDERED_LIST_ITEM,
}

ALWAYS_ESCAPED = set("\\*_`~+<&[]")
ASCII_PUNCTUATION = set(string.punctuation)
LINE_BREAK = "<br>"
EMPTY_PARAGRAPH = "&nbsp;"
UNDERLINE_MARKER = "+"

HTML_TAG_RE = re.compile(r"^<(/?)([a-zA-Z]+)\s*/?>$")
LEADING_ORDINAL_RE = re.compile(r"^(\d+)([.)])")
LIST_MARKER_RE = re.compile(r"([*+-]|\d{1,9}[.)])( *)")
BACKTICKS_RE = re.compile(r"`+")

INDENT = "  "


###############################################################################
# ++underline++ inline rule, modelled on markdown-it's strikethrough rule

def _underline_tokenize(state: StateInline, silent: bool) -> bool:
    if silent or state.src[state.pos] != UNDERLINE_MARKER:
        return False
    scanned = state.scanDelims(state.pos, True)
    length = scanned.length
    if length < 2:
        return False

    if length % 2:
        token = state.push("text", "", 0)
        token.content = UNDERLINE_MARKER
        length -= 1
    for _ in range(0, length, 2):
        token = state.push("text", "", 0)
        token.content = UNDERLINE_MARKER * 2
        state.delimiters.append(Delimiter(
            marker=ord(UNDERLINE_MARKER),
            length=0,
            token=len(state.tokens) - 1,
            end=-1,
            open=scanned.can_open,
            close=scanned.can_close,
        ))
    state.pos += scanned.length
    return True


def _underline_pairs(state: StateInline, delimiters: List[Delimiter]) -> None:
    for delimiter in delimiters:
        if delimiter.marker != ord(UNDERLINE_MARKER) or delimiter.end == -1:
            continue
        for index, token_type, nesting in (
            (delimiter.token, "ins_open", 1),
            (delimiters[delimiter.end].token, "ins_close", -1),
        ):
            token = state.tokens[index]
            token.type = token_type
            token.tag = "ins"
            token.nesting = nesting
            token.markup = UNDERLINE_MARKER * 2
            token.content = ""


def _underline_post_process(state: StateInline) -> None:
    _underline_pairs(state, state.delimiters)
    for meta in state.tokens_meta:
        if meta and "delimiters" in meta:
            _underline_pairs(state, meta["delimiters"])


def create_parser() -> MarkdownIt:
    """CommonMark parser with strikethrough and ++underline++ enabled"""
    parser = MarkdownIt("commonmark").enable("strikethrough")
    parser.inline.ruler.before("emphasis", "underline", _underline_tokenize)
    parser.inline.ruler2.before("emphasis", "underline", _underline_post_process)
    return parser


###############################################################################
# Export helpers

def _is_punctuation(char: str) -> bool:
    return char in ASCII_PUNCTUATION or unicodedata.category(char).startswith("P")


def _delimiter_fits(marker: str, before: str, after: str, closing: bool) -> bool:
    """CommonMark flanking rules for a delimiter run between ``before`` and ``after``"""
    left = not after.isspace() and (not _is_punctuation(after) or before.isspace() or _is_punctuation(before))
    right = not before.isspace() and (not _is_punctuation(before) or after.isspace() or _is_punctuation(after))
    if marker == "_":
        if closing:
            return right and (not left or _is_punctuation(after))
        return left and (not right or _is_punctuation(before))
    return right if closing else left


def _edge_whitespace(text: str) -> Tuple[int, int]:
    """Offsets bounding the text between leading and trailing whitespace"""
    lead = 0
    while lead < len(text) and text[lead].isspace() and text[lead] != "\n":
        lead += 1
    trail = len(text)
    while trail > lead and text[trail - 1].isspace() and text[trail - 1] != "\n":
        trail -= 1
    return lead, trail


def _code_span(text: str) -> str:
    fence = "`" * (max((len(run) for run in BACKTICKS_RE.findall(text)), default=0) + 1)
    if text[:1] == "`" or text[-1:] == "`" or (text[:1] == text[-1:] == " " and text.strip(" ")):
        text = f" {text} "
    return f"{fence}{text}{fence}"


@dataclass(eq=False)
class _Marker:
    """Opening or closing style delimiter, written as markdown or as an HTML tag"""
    style: InlineStyle
    closing: bool = False
    partner: Optional["_Marker"] = None
    as_html: bool = False

    def close(self) -> "_Marker":
        closer = _Marker(self.style, closing=True, partner=self)
        self.partner = closer
        return closer

    def render(self) -> str:
        if self.as_html:
            tag = HTML_TAG_FOR_STYLE[self.style]
            return f"</{tag}>" if self.closing else f"<{tag}>"
        return MARKER_FOR_STYLE[self.style]


Piece = Union[str, _Marker]


class _ListLayout:
    """Numbering and indentation of a run of consecutive list items"""

    def __init__(self):
        self.counters: Dict[int, int] = {}
        self.parents: List[Tuple[int, int]] = []

    def reset(self) -> None:
        self.counters.clear()
        self.parents.clear()

    def prefix(self, block: Block) -> str:
        depth = block.depth
        if block.type == BlockType.ORDERED_LIST_ITEM:
            for level in [level for level in self.counters if level > depth]:
                del self.counters[level]
            self.counters[depth] = self.counters.get(depth, 0) + 1
            marker = f"{self.counters[depth]}."
        else:
            for level in [level for level in self.counters if level >= depth]:
                del self.counters[level]
            marker = "*"

        while self.parents and self.parents[-1][0] >= depth:
            self.parents.pop()
        if self.parents:
            parent_depth, column = self.parents[-1]
            skipped = depth - parent_depth - 1
        else:
            column, skipped = 0, depth
        # CommonMark reads more than three extra spaces as code, so one skipped level at most
        indent = column + len(INDENT) * min(skipped, 1)
        self.parents.append((depth, indent + len(marker) + 1))
        return " " * indent + marker


@dataclass
class _OpenItem:
    depth: int
    content_column: int
    block_type: BlockType
    added: bool = False


class MarkdownConverter:
    """
    Converts between markdown text and Document values
    """

    def __init__(self, parser: Optional[MarkdownIt] = None):
        self.parser = parser or create_parser()

    ###########################################################################
    # Export

    def serialize(self, document: Document) -> str:
        """
        Export a document to markdown

        Args:
            document: Document to export

        Returns:
            Markdown text terminated by a newline
        """
        parts: List[str] = []
        previous: Optional[Block] = None
        layout = _ListLayout()
        for block in document:
            if previous is not None:
                parts.append("\n" if previous.is_list_item and block.is_list_item else "\n\n")
            if not block.is_list_item:
                layout.reset()
            parts.append(self._serialize_block(block, layout))
            previous = block
        return "".join(parts) + "\n"

    def _serialize_block(self, block: Block, layout: _ListLayout) -> str:
        if block.type == BlockType.CODE_BLOCK:
            fence = "`" * max(3, max((len(run) for run in BACKTICKS_RE.findall(block.text)), default=0) + 1)
            return "\n".join([fence] + block.text.split("\n") + [fence])

        if block.type in HEADER_TYPES:
            prefix = "#" * (HEADER_TYPES.index(block.type) + 1)
            if not block.text:
                return prefix
            inline = self._serialize_inline(block)
            # a trailing run of '#' would be read as a closing sequence
            if inline.endswith("#"):
                inline = inline[:-1] + "\\#"
            return f"{prefix} {inline}"

        if block.is_list_item:
            prefix = layout.prefix(block)
            return f"{prefix} {self._escape_block_start(self._serialize_inline(block))}" if block.text else prefix

        if not block.text:
            return EMPTY_PARAGRAPH
        return self._escape_block_start(self._serialize_inline(block))

    @staticmethod
    def _style_spans(block: Block) -> List[Tuple[int, int, frozenset]]:
        """Style runs with entity boundaries merged away"""
        spans: List[Tuple[int, int, frozenset]] = []
        for run in block.style_runs:
            if spans and spans[-1][2] == run.style:
                spans[-1] = (spans[-1][0], run.end, run.style)
            else:
                spans.append((run.start, run.end, run.style))
        return spans

    def _serialize_inline(self, block: Block) -> str:
        lead, trail = _edge_whitespace(block.text)
        pieces: List[Piece] = []
        open_markers: List[_Marker] = []
        for start, end, style in self._style_spans(block):
            wanted = style - {InlineStyle.CODE}
            while open_markers and not {marker.style for marker in open_markers} <= wanted:
                pieces.append(open_markers.pop().close())
            for marker_style, _ in STYLE_MARKERS:
                if marker_style in wanted and marker_style not in {marker.style for marker in open_markers}:
                    opener = _Marker(marker_style)
                    pieces.append(opener)
                    open_markers.append(opener)

            text = block.text[start:end]
            if InlineStyle.CODE in style:
                lines = text.split("\n")
                for position, line in enumerate(lines):
                    if position:
                        pieces.append(LINE_BREAK)
                    if line:
                        pieces.append(_code_span(line))
            else:
                pieces.append("".join(
                    self._escape(char, not lead <= start + position < trail)
                    for position, char in enumerate(text)
                ))
        while open_markers:
            pieces.append(open_markers.pop().close())
        return self._render(pieces)

    @staticmethod
    def _render(pieces: Sequence[Piece]) -> str:
        """Join pieces, turning marker pairs CommonMark would not read back into HTML tags"""
        while True:
            rendered = [piece if isinstance(piece, str) else piece.render() for piece in pieces]
            for index, piece in enumerate(pieces):
                if not isinstance(piece, _Marker) or piece.as_html:
                    continue
                before = next((chunk[-1] for chunk in reversed(rendered[:index]) if chunk), " ")
                after = next((chunk[0] for chunk in rendered[index + 1:] if chunk), " ")
                if not _delimiter_fits(rendered[index], before, after, piece.closing):
                    piece.as_html = piece.partner.as_html = True
                    break
            else:
                return "".join(rendered)

    @staticmethod
    def _escape(char: str, at_edge: bool) -> str:
        if char == "\n":
            return LINE_BREAK
        if at_edge:
            return f"&#{ord(char)};"
        if char in ALWAYS_ESCAPED:
            return "\\" + char
        return char

    @staticmethod
    def _escape_block_start(line: str) -> str:
        """Keep a paragraph or item text from being read back as a header, list or quote"""
        if line[:1] in ("#", "-", ">"):
            return "\\" + line
        return LEADING_ORDINAL_RE.sub(r"\1\\\2", line, count=1)

    ###########################################################################
    # Import

    def parse(self, text: str) -> Document:
        """
        Import markdown into a document

        Args:
            text: Markdown source

        Returns:
            Document with freshly generated block keys; a single empty
            unstyled block when the source holds no blocks

        Raises:
            MarkdownConversionError: If a code fence is never closed
        """
        source = text.replace("\r\n", "\n").replace("\r", "\n")
        lines = source.split("\n")
        tokens = self.parser.parse(source)

        blocks: List[Block] = []
        keys: Set[str] = set()
        lists: List[BlockType] = []
        items: List[_OpenItem] = []
        heading: Optional[BlockType] = None

        def add(block_type: BlockType, block_text: str = "", characters=(), depth: int = 0) -> None:
            key = generate_key(keys)
            keys.add(key)
            blocks.append(Block(key=key, type=block_type, text=block_text, characters=characters, depth=depth))

        def add_pending_item() -> None:
            if items and not items[-1].added:
                add(items[-1].block_type, depth=items[-1].depth)
                items[-1].added = True

        def add_text(block_text: str, characters) -> None:
            if items and not items[-1].added:
                add(items[-1].block_type, block_text, characters, items[-1].depth)
                items[-1].added = True
            else:
                add(heading or BlockType.UNSTYLED, block_text, characters)

        for token in tokens:
            if token.type in LIST_TYPE_FOR_TOKEN:
                lists.append(LIST_TYPE_FOR_TOKEN[token.type])
            elif token.type in ("bullet_list_close", "ordered_list_close"):
                lists.pop()
            elif token.type == "list_item_open":
                add_pending_item()
                items.append(self._open_item(token, lines, lists[-1], items))
            elif token.type == "list_item_close":
                add_pending_item()
                items.pop()
            elif token.type == "heading_open":
                heading = HEADER_TYPES[int(token.tag[1:]) - 1]
            elif token.type == "heading_close":
                heading = None
            elif token.type == "inline":
                if token.content == EMPTY_PARAGRAPH:
                    add_text("", ())
                else:
                    add_text(*self._parse_inline(token.children))
            elif token.type == "html_block":
                add_text(*self._parse_inline(self.parser.parseInline(token.content.strip())[0].children))
            elif token.type in ("fence", "code_block"):
                if token.type == "fence" and not self._fence_closed(token, lines):
                    raise MarkdownConversionError(f"Unterminated code fence opened on line {token.map[0] + 1}")
                add_pending_item()
                content = token.content[:-1] if token.content.endswith("\n") else token.content
                add(BlockType.CODE_BLOCK, content)

        if not blocks:
            return Document.empty()
        logger.debug(f"Parsed {len(blocks)} blocks from {len(tokens)} markdown tokens")
        return Document(tuple(blocks))

    @staticmethod
    def _open_item(token: Token, lines: List[str], block_type: BlockType, items: List[_OpenItem]) -> _OpenItem:
        """Depth of a list item from its indentation relative to the enclosing item"""
        line = lines[token.map[0]]
        indent = len(line) - len(line.lstrip(" "))
        if items:
            parent = items[-1]
            depth = parent.depth + 1 + max(0, indent - parent.content_column) // len(INDENT)
        else:
            depth = indent // len(INDENT)

        marker = LIST_MARKER_RE.match(line, indent)
        if marker is None:
            content_column = indent + len(INDENT)
        else:
            spaces = len(marker.group(2))
            padding = 1 if marker.end() == len(line) or not 1 <= spaces <= 4 else spaces
            content_column = indent + len(marker.group(1)) + padding
        return _OpenItem(depth, content_column, block_type)

    @staticmethod
    def _fence_closed(token: Token, lines: List[str]) -> bool:
        first, last = token.map
        closing = lines[last - 1].strip()
        return (
            last - 1 > first
            and len(closing) >= len(token.markup)
            and closing == token.markup[0] * len(closing)
        )

    @staticmethod
    def _parse_inline(children: Optional[List[Token]]) -> Tuple[str, Tuple[CharacterMetadata, ...]]:
        text: List[str] = []
        characters: List[CharacterMetadata] = []
        active: Counter = Counter()

        def emit(chunk: str, *extra: InlineStyle) -> None:
            metadata = CharacterMetadata(frozenset(+active).union(extra))
            text.append(chunk)
            characters.extend([metadata] * len(chunk))

        def toggle(style: InlineStyle, opening: bool) -> None:
            if opening:
                active[style] += 1
            elif active[style] > 0:
                active[style] -= 1

        for child in children or ():
            if child.type in ("text", "image"):
                emit(child.content)
            elif child.type == "code_inline":
                emit(child.content, InlineStyle.CODE)
            elif child.type == "softbreak":
                emit(" ")
            elif child.type == "hardbreak":
                emit("\n")
            elif child.type == "html_inline":
                tag = HTML_TAG_RE.match(child.content.strip())
                if not tag:
                    continue
                closing, name = tag.group(1), tag.group(2).lower()
                if name == "br":
                    emit("\n")
                elif name in STYLE_FOR_TAG:
                    toggle(STYLE_FOR_TAG[name], not closing)
            elif child.nesting and child.tag in STYLE_FOR_TAG:
                toggle(STYLE_FOR_TAG[child.tag], child.nesting > 0)

        return "".join(text), tuple(characters)


_converter = MarkdownConverter()


def markdown_to_document(text: str) -> Document:
    return _converter.parse(text)


def document_to_markdown(document: Document) -> str:
    return _converter.serialize(document)


def snapshot_from_markdown(text: str) -> Snapshot:
    """Parse markdown and put the cursor at the start of the first block"""
    return Snapshot.create(markdown_to_document(text))
