"""
Tests for markdown import/export.
"""

import pytest

from rich_blocks.errors import MarkdownConversionError
from rich_blocks.model.document import (
    PLAIN,
    Block,
    BlockType,
    CharacterMetadata,
    Document,
    InlineStyle,
    Selection,
    Snapshot,
)
from rich_blocks.model.markdown_converter import (
    document_to_markdown,
    markdown_to_document,
    snapshot_from_markdown,
)
from rich_blocks.model.resolver import EditCommandResolver, Key, KeyEvent

INITIAL_TEXT = """# Headline 1

Hello

* World
* Second
* Third

OK"""


def styled(*styles):
    return CharacterMetadata(frozenset(styles))


def assert_round_trip(document):
    markdown = document_to_markdown(document)
    parsed = markdown_to_document(markdown)
    assert parsed.same_content(document), markdown


class TestImport:
    """markdown -> Document"""

    def test_initial_document(self):
        doc = markdown_to_document(INITIAL_TEXT)
        assert [(b.type, b.text) for b in doc] == [
            (BlockType.HEADER_ONE, "Headline 1"),
            (BlockType.UNSTYLED, "Hello"),
            (BlockType.UNORDERED_LIST_ITEM, "World"),
            (BlockType.UNORDERED_LIST_ITEM, "Second"),
            (BlockType.UNORDERED_LIST_ITEM, "Third"),
            (BlockType.UNSTYLED, "OK"),
        ]
        assert len(set(doc.keys)) == 6

    @pytest.mark.parametrize("level", range(1, 7))
    def test_header_levels(self, level):
        doc = markdown_to_document("#" * level + " Title")
        assert doc.first_block.type.value.startswith("header-")
        assert document_to_markdown(doc) == "#" * level + " Title\n"

    def test_nested_lists(self):
        doc = markdown_to_document("* a\n  * b\n    - c\n1. d\n  1) e")
        assert [(b.type, b.text, b.depth) for b in doc] == [
            (BlockType.UNORDERED_LIST_ITEM, "a", 0),
            (BlockType.UNORDERED_LIST_ITEM, "b", 1),
            (BlockType.UNORDERED_LIST_ITEM, "c", 2),
            (BlockType.ORDERED_LIST_ITEM, "d", 0),
            (BlockType.ORDERED_LIST_ITEM, "e", 1),
        ]

    def test_code_block_is_raw(self):
        doc = markdown_to_document("```python\ndef f():\n    return **x**\n```")
        assert doc.first_block.type == BlockType.CODE_BLOCK
        assert doc.first_block.text == "def f():\n    return **x**"
        assert doc.first_block.characters == (PLAIN,) * len(doc.first_block.text)

    def test_unterminated_fence(self):
        with pytest.raises(MarkdownConversionError):
            markdown_to_document("text\n\n```\ncode")

    def test_inline_styles(self):
        doc = markdown_to_document("**b** _i_ *j* ++u++ `c` ~~s~~")
        block = doc.first_block
        assert block.text == "b i j u c s"
        assert block.inline_style_at(0) == {InlineStyle.BOLD}
        assert block.inline_style_at(2) == {InlineStyle.ITALIC}
        assert block.inline_style_at(4) == {InlineStyle.ITALIC}
        assert block.inline_style_at(6) == {InlineStyle.UNDERLINE}
        assert block.inline_style_at(8) == {InlineStyle.CODE}
        assert block.inline_style_at(10) == {InlineStyle.STRIKETHROUGH}
        assert block.inline_style_at(1) == frozenset()

    def test_paragraph_lines_join(self):
        doc = markdown_to_document("soft\nwrap\n\nhard  \nbreak\n\nslash\\\nbreak")
        assert [b.text for b in doc] == ["soft wrap", "hard\nbreak", "slash\nbreak"]

    def test_html_entities_and_escapes(self):
        doc = markdown_to_document("Tom &amp; Jerry \\*not bold\\*")
        assert doc.first_block.text == "Tom & Jerry *not bold*"

    def test_empty_source_gives_single_empty_block(self):
        doc = markdown_to_document("")
        assert len(doc) == 1
        assert doc.first_block.type == BlockType.UNSTYLED
        assert doc.first_block.text == ""

    def test_html_tags(self):
        doc = markdown_to_document("<strong>b</strong> <em>i</em> <u>u</u> <del>s</del> x<br>y")
        block = doc.first_block
        assert block.text == "b i u s x\ny"
        assert block.inline_style_at(0) == {InlineStyle.BOLD}
        assert block.inline_style_at(2) == {InlineStyle.ITALIC}
        assert block.inline_style_at(4) == {InlineStyle.UNDERLINE}
        assert block.inline_style_at(6) == {InlineStyle.STRIKETHROUGH}
        assert block.inline_style_at(8) == frozenset()

    def test_unpaired_underline_markers_stay_text(self):
        doc = markdown_to_document("a ++ b +c+")
        assert doc.first_block.text == "a ++ b +c+"
        assert all(not char.style for char in doc.first_block.characters)

    def test_links_and_images_keep_their_text(self):
        doc = markdown_to_document("see [docs](https://example.com) ![alt](image.png)")
        assert doc.first_block.text == "see docs alt"

    def test_item_holding_a_code_block(self):
        doc = markdown_to_document("* item\n\n  ```\n  code\n  ```")
        assert [(b.type, b.text) for b in doc] == [
            (BlockType.UNORDERED_LIST_ITEM, "item"),
            (BlockType.CODE_BLOCK, "code"),
        ]

    def test_snapshot_cursor_at_start(self):
        snapshot = snapshot_from_markdown(INITIAL_TEXT)
        assert snapshot.selection == Selection.collapsed(snapshot.document.first_block.key, 0)


class TestExport:
    """Document -> markdown"""

    def test_initial_document_is_stable(self):
        assert document_to_markdown(markdown_to_document(INITIAL_TEXT)) == INITIAL_TEXT + "\n"

    def test_ordered_numbering_per_depth(self):
        doc = Document.create(
            Block(key="a", type=BlockType.ORDERED_LIST_ITEM, text="one"),
            Block(key="b", type=BlockType.ORDERED_LIST_ITEM, text="nested", depth=1),
            Block(key="c", type=BlockType.ORDERED_LIST_ITEM, text="two"),
            Block(key="d", text="para"),
            Block(key="e", type=BlockType.ORDERED_LIST_ITEM, text="restart"),
        )
        assert document_to_markdown(doc) == "1. one\n   1. nested\n2. two\n\npara\n\n1. restart\n"

    def test_empty_blocks(self):
        doc = Document.create(
            Block(key="a", type=BlockType.HEADER_ONE),
            Block(key="b"),
            Block(key="c", type=BlockType.UNORDERED_LIST_ITEM),
            Block(key="d", type=BlockType.UNORDERED_LIST_ITEM, depth=1),
            Block(key="e", type=BlockType.CODE_BLOCK),
        )
        assert document_to_markdown(doc) == "#\n\n&nbsp;\n\n*\n  *\n\n```\n\n```\n"

    def test_soft_newlines(self):
        doc = Document.create(
            Block(key="a", type=BlockType.HEADER_TWO, text="A\nB"),
            Block(key="b", text="line one\nline two"),
        )
        assert document_to_markdown(doc) == "## A<br>B\n\nline one<br>line two\n"

    def test_inline_markers(self):
        text = "bold and italic"
        characters = (styled(InlineStyle.BOLD),) * 4 + (PLAIN,) * 5 + (styled(InlineStyle.ITALIC),) * 6
        doc = Document.create(Block(key="a", text=text, characters=characters))
        assert document_to_markdown(doc) == "**bold** and _italic_\n"

    def test_code_is_innermost(self):
        characters = (styled(InlineStyle.BOLD), styled(InlineStyle.BOLD, InlineStyle.CODE))
        doc = Document.create(Block(key="a", text="ab", characters=characters))
        assert document_to_markdown(doc) == "**a`b`**\n"

    @pytest.mark.parametrize("text,expected", [
        ("1. not a list", "1\\. not a list"),
        ("# not a header", "\\# not a header"),
        ("- not a bullet", "\\- not a bullet"),
        ("a*b_c", "a\\*b\\_c"),
        ("&nbsp;", "\\&nbsp;"),
    ])
    def test_paragraph_escapes(self, text, expected):
        doc = Document.create(Block(key="a", text=text))
        assert document_to_markdown(doc) == expected + "\n"

    def test_item_text_escapes(self):
        doc = Document.create(Block(key="a", type=BlockType.UNORDERED_LIST_ITEM, text="- x"))
        assert document_to_markdown(doc) == "* \\- x\n"

    def test_intraword_italic_uses_html(self):
        characters = (PLAIN, styled(InlineStyle.ITALIC), PLAIN)
        doc = Document.create(Block(key="a", text="abc", characters=characters))
        assert document_to_markdown(doc) == "a<em>b</em>c\n"

    def test_edge_whitespace_is_entity_encoded(self):
        doc = Document.create(Block(key="a", text="\xa0"), Block(key="b", text=" x "))
        assert document_to_markdown(doc) == "&#160;\n\n&#32;x&#32;\n"

    def test_code_span_fence_outgrows_backticks(self):
        doc = Document.create(Block(key="a", text="a`b", characters=(styled(InlineStyle.CODE),) * 3))
        assert document_to_markdown(doc) == "``a`b``\n"

    def test_code_block_fence_outgrows_backticks(self):
        doc = Document.create(Block(key="a", type=BlockType.CODE_BLOCK, text="```\nx"))
        assert document_to_markdown(doc) == "````\n```\nx\n````\n"


class TestRoundTrip:
    """parse(serialize(D)) has the same content as D"""

    def test_headers_lists_code(self):
        assert_round_trip(Document.create(
            Block(key="h1", type=BlockType.HEADER_ONE, text="Title"),
            Block(key="h3", type=BlockType.HEADER_THREE, text="Sub"),
            Block(key="p", text="Paragraph with 1. stuff"),
            Block(key="u1", type=BlockType.UNORDERED_LIST_ITEM, text="top"),
            Block(key="u2", type=BlockType.UNORDERED_LIST_ITEM, text="nested", depth=1),
            Block(key="o1", type=BlockType.ORDERED_LIST_ITEM, text="deeper", depth=2),
            Block(key="o2", type=BlockType.ORDERED_LIST_ITEM, text="back"),
            Block(key="c", type=BlockType.CODE_BLOCK, text="x = 1\n\nprint(x)"),
            Block(key="c2", type=BlockType.CODE_BLOCK, text="second"),
        ))

    def test_styles_and_special_characters(self):
        bold = styled(InlineStyle.BOLD)
        mixed = styled(InlineStyle.BOLD, InlineStyle.ITALIC, InlineStyle.UNDERLINE)
        code = styled(InlineStyle.CODE)
        strike = styled(InlineStyle.STRIKETHROUGH)
        text = "ab*cd_e`f"
        characters = (bold, mixed, mixed, PLAIN, strike, strike, PLAIN, PLAIN, PLAIN)
        assert_round_trip(Document.create(
            Block(key="a", text=text, characters=characters),
            Block(key="b", type=BlockType.UNORDERED_LIST_ITEM, text="x\ny", characters=(code, PLAIN, bold)),
            Block(key="c", text="<br> & \\ ++ ~~"),
            Block(key="d", text="  leading spaces"),
        ))

    def test_empty_blocks(self):
        assert_round_trip(Document.create(
            Block(key="a", type=BlockType.HEADER_FOUR),
            Block(key="b"),
            Block(key="c", type=BlockType.ORDERED_LIST_ITEM, depth=1),
            Block(key="d", type=BlockType.CODE_BLOCK),
            Block(key="e", text="\n"),
        ))

    def test_whitespace_only_blocks(self):
        assert_round_trip(Document.create(
            Block(key="a", text="\xa0"),
            Block(key="b", text=" "),
            Block(key="c", type=BlockType.UNORDERED_LIST_ITEM, text="  x "),
            Block(key="d", type=BlockType.HEADER_TWO, text=" t"),
        ))

    def test_backticks_and_literal_fences(self):
        code = styled(InlineStyle.CODE)
        assert_round_trip(Document.create(
            Block(key="a", text="`x`", characters=(code,) * 3),
            Block(key="b", type=BlockType.CODE_BLOCK, text="```\ncode\n```"),
        ))

    def test_markers_inside_words(self):
        italic = styled(InlineStyle.ITALIC)
        underline = styled(InlineStyle.UNDERLINE)
        assert_round_trip(Document.create(
            Block(key="a", text="abcd", characters=(PLAIN, italic, underline, PLAIN)),
            Block(key="b", text="x.y", characters=(PLAIN, styled(InlineStyle.BOLD), PLAIN)),
        ))

    def test_documents_reached_through_the_resolver(self):
        resolver = EditCommandResolver(max_depth=2)
        snapshot = snapshot_from_markdown(INITIAL_TEXT)
        doc = snapshot.document
        header, third = doc.blocks[0], doc.blocks[4]

        # split after the header
        snapshot = resolver.resolve_return(
            KeyEvent(Key.RETURN), Snapshot(doc, Selection.collapsed(header.key, header.length)))
        assert_round_trip(snapshot.document)

        # indent a list item twice, soft newline inside it
        snapshot = Snapshot(snapshot.document, Selection.collapsed(third.key, third.length))
        snapshot = resolver.resolve_tab(KeyEvent(Key.TAB), snapshot)
        snapshot = resolver.resolve_tab(KeyEvent(Key.TAB), snapshot)
        snapshot = resolver.resolve_return(KeyEvent(Key.RETURN, shift=True), snapshot)
        assert snapshot.document.get_block(third.key).depth == 2
        assert_round_trip(snapshot.document)
