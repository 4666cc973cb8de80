#!/usr/bin/env python3
"""
EditorSession Example: Return/Tab handling on a markdown document

This example drives an EditorSession the way an editor UI would: it moves the
cursor, presses keys, and prints the markdown committed after each change.
"""

from rich_blocks import EditorSession, Key, KeyEvent

INITIAL_TEXT = """# Headline 1

Hello

* World
* Second
* Third

OK"""


def on_change(event_type, data):
    print(f"   📝 {event_type}: {data['change_type']} ({data['block_count']} blocks)")


def press(session, label, event):
    result = session.handle_key(event)
    print(f"{label}: {result.value}")


def main():
    print("🚀 EditorSession Example")
    print("=" * 50)

    session = EditorSession.from_markdown(INITIAL_TEXT, doc_id="example", event_callback=on_change)
    blocks = session.current().document.blocks

    # Return at the end of the header starts a plain paragraph
    header = blocks[0]
    session.move_cursor(header.key, header.length)
    press(session, "1. Return at end of header", KeyEvent(Key.RETURN))

    # Tab nests the last bullet, Tab again hits the depth bound
    third = blocks[4]
    session.move_cursor(third.key, third.length)
    press(session, "2. Tab on 'Third'", KeyEvent(Key.TAB))
    press(session, "3. Tab again", KeyEvent(Key.TAB))

    # Shift+Return inserts a line break inside the bullet
    press(session, "4. Shift+Return", KeyEvent(Key.RETURN, shift=True))

    print("\nFinal markdown:")
    print("-" * 50)
    print(session.markdown)
    print(f"Loro snapshot size: {len(session.get_loro_snapshot())} bytes")


if __name__ == "__main__":
    main()
