"""Full-screen two-panel file manager (the ``mc`` command).

Browses a nested dict tree: dicts are directories, strings are file
contents. While it runs it owns the keyboard; the shell resumes when it
exits.

Keys:
    Up/Down     move selection
    Enter       open directory / view file
    Backspace   parent directory
    Tab         switch panel
    F3          view file
    q/Esc/F10   exit
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from prompt_toolkit.application import Application
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.key_binding.key_processor import KeyPressEvent
from prompt_toolkit.layout import HSplit, Layout, VSplit, Window
from prompt_toolkit.layout.controls import FormattedTextControl

Tree = Mapping[str, Any]

DEFAULT_TREE: dict[str, Any] = {
    "root": {
        ".bashrc": "# ~/.bashrc: executed by bash(1) for non-login shells.\n",
        "notes.txt": "Archive bridge maintenance window: Sunday 02:00 UTC\n",
        "scripts": {"backup.sh": "#!/bin/bash\ntar czf /var/backups/etc.tgz /etc\n"},
    },
    "etc": {
        "hostname": "prod-srv-42\n",
        "hosts": "127.0.0.1 localhost\n127.0.1.1 prod-srv-42\n",
        "nginx": {"nginx.conf": "user www-data;\nworker_processes auto;\n"},
    },
    "var": {"log": {"syslog": "Jan 12 03:14:07 prod-srv-42 kernel: [    0.000000] Linux\n"}},
    "tmp": {},
}


@dataclass
class Panel:
    """Cursor over one directory of the tree."""

    tree: Tree
    path: list[str] = field(default_factory=list)
    selected: int = 0

    @property
    def cwd(self) -> str:
        return "/" + "/".join(self.path)

    def node(self) -> Tree:
        node = self.tree
        for part in self.path:
            node = node[part]
        return node

    def entries(self) -> list[tuple[str, bool]]:
        """(name, is_dir) pairs, directories first, with '..' below the root."""
        node = self.node()
        dirs = sorted(name for name, value in node.items() if isinstance(value, Mapping))
        files = sorted(name for name, value in node.items() if not isinstance(value, Mapping))
        items = [(name, True) for name in dirs] + [(name, False) for name in files]
        if self.path:
            items.insert(0, ("..", True))
        return items

    def move(self, delta: int) -> None:
        count = len(self.entries())
        if count:
            self.selected = max(0, min(count - 1, self.selected + delta))

    def up(self) -> None:
        if self.path:
            left = self.path.pop()
            names = [name for name, _ in self.entries()]
            self.selected = names.index(left) if left in names else 0

    def open(self) -> str | None:
        """Enter the selected directory, or return the selected file's content."""
        entries = self.entries()
        if not entries:
            return None
        name, is_dir = entries[self.selected]
        if name == "..":
            self.up()
            return None
        if is_dir:
            self.path.append(name)
            self.selected = 0
            return None
        return str(self.node()[name])


class FileManagerApp:
    """prompt_toolkit Application around two Panels."""

    def __init__(self, tree: Tree | None = None, title: str = "Midnight Commander") -> None:
        tree = tree if tree is not None else DEFAULT_TREE
        self.title = title
        self.panels = [Panel(tree), Panel(tree)]
        self.active = 0
        self.status = "F3 View  Tab Switch  F10 Quit"
        self._app: Application[None] = Application(
            layout=self._create_layout(),
            key_bindings=self._create_key_bindings(),
            full_screen=True,
        )

    @property
    def panel(self) -> Panel:
        return self.panels[self.active]

    def _create_layout(self) -> Layout:
        return Layout(
            HSplit(
                [
                    Window(
                        FormattedTextControl(lambda: FormattedText([("reverse", f" {self.title} ")])),
                        height=1,
                    ),
                    VSplit(
                        [
                            Window(FormattedTextControl(lambda: self._render_panel(0))),
                            Window(width=1, char="│"),
                            Window(FormattedTextControl(lambda: self._render_panel(1))),
                        ]
                    ),
                    Window(
                        FormattedTextControl(lambda: FormattedText([("reverse", f" {self.status} ")])),
                        height=1,
                    ),
                ]
            )
        )

    def _render_panel(self, index: int) -> FormattedText:
        panel = self.panels[index]
        focused = index == self.active
        lines: list[tuple[str, str]] = [("bold" if focused else "", f" {panel.cwd}\n")]
        for i, (name, is_dir) in enumerate(panel.entries()):
            label = f"/{name}" if is_dir and name != ".." else name
            style = "reverse" if focused and i == panel.selected else ("ansicyan" if is_dir else "")
            lines.append((style, f" {label}\n"))
        return FormattedText(lines)

    def _view_selected(self) -> None:
        content = self.panel.open()
        if content is not None:
            first = content.strip().split("\n")[0] if content.strip() else "(empty)"
            self.status = first[:120]

    def _create_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("up")
        def move_up(event: KeyPressEvent) -> None:
            self.panel.move(-1)

        @kb.add("down")
        def move_down(event: KeyPressEvent) -> None:
            self.panel.move(1)

        @kb.add("enter")
        @kb.add("f3")
        def open_selected(event: KeyPressEvent) -> None:
            self._view_selected()

        @kb.add("backspace")
        def parent(event: KeyPressEvent) -> None:
            self.panel.up()

        @kb.add("tab")
        def switch(event: KeyPressEvent) -> None:
            self.active = 1 - self.active

        @kb.add("q")
        @kb.add("escape")
        @kb.add("f10")
        @kb.add("c-c")
        def quit_(event: KeyPressEvent) -> None:
            event.app.exit()

        return kb

    async def run(self) -> None:
        await self._app.run_async()
