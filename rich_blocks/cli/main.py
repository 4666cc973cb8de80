# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Command line host for the edit command resolver.

Loads a markdown file, replays Return/Tab key presses against it and prints
the resulting markdown, the same round trip an editor UI performs on every
keystroke.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

import click

from ..errors import RichBlocksError
from ..model.resolver import DEFAULT_MAX_DEPTH, KeyEvent
from ..session import EditorSession, HandleResult

logger = logging.getLogger(__name__)


def _parse_cursor(cursor: str, session: EditorSession) -> Tuple[str, int]:
    """
    Resolve ``BLOCK:OFFSET`` into a block key and offset

    BLOCK is a block index (negative counts from the end); OFFSET is a
    character offset or ``end``.
    """
    try:
        block_part, offset_part = cursor.split(":", 1)
        block = session.current().document.blocks[int(block_part)]
        offset = block.length if offset_part == "end" else int(offset_part)
    except (ValueError, IndexError):
        raise click.BadParameter(f"'{cursor}' is not a valid BLOCK:OFFSET position", param_hint="--cursor")
    return block.key, offset


def _parse_keys(keys: Tuple[str, ...]) -> Tuple[KeyEvent, ...]:
    try:
        return tuple(KeyEvent.parse(name) for name in keys)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--key")


@click.group()
def main():
    """rich-blocks: block editing commands"""


@main.command()
@click.argument("source", type=click.File("r"))
@click.option("--key", "keys", multiple=True, help="Key to press: return, shift+return, tab, shift+tab (repeatable)")
@click.option("--cursor", default="-1:end", show_default=True, help="Cursor position as BLOCK:OFFSET")
@click.option("--max-depth", default=DEFAULT_MAX_DEPTH, show_default=True, type=click.IntRange(min=0), help="Deepest list level reachable with Tab")
@click.option("--loro-snapshot", type=click.Path(dir_okay=False), default=None, help="Write the resulting Loro snapshot to this file")
@click.option("--log-level", default="WARNING", help="Logging level")
def replay(source, keys: Tuple[str, ...], cursor: str, max_depth: int, loro_snapshot: Optional[str], log_level: str):
    """Replay key presses on the markdown document SOURCE ('-' for stdin)"""

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    events = _parse_keys(keys)
    try:
        session = EditorSession.from_markdown(source.read(), max_depth=max_depth)
        session.move_cursor(*_parse_cursor(cursor, session))
        for name, event in zip(keys, events):
            if session.handle_key(event) is HandleResult.NOT_HANDLED:
                click.echo(f"{name}: not handled", err=True)
    except RichBlocksError as e:
        raise click.ClickException(str(e))

    logger.info(f"Replayed {len(events)} keys with {session.commit_count} document changes")
    click.echo(session.markdown, nl=False)

    if loro_snapshot:
        Path(loro_snapshot).write_bytes(session.get_loro_snapshot())
        logger.info(f"Wrote Loro snapshot to {loro_snapshot}")
