# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Box drawing for the panels.

Panels render to plain strings that may contain ANSI colour codes supplied by
the host theme. Widths are measured in terminal cells with the codes removed.
"""

from typing import List, Optional

from rich.text import Text

from ..core.host import Theme


def visible_width(text: str) -> int:
    """Printable cell width of ``text``, ignoring ANSI escape sequences."""
    if not text:
        return 0
    return Text.from_ansi(text).cell_len


class BoxRenderer:
    """
    Rounded box of fixed width.

    The box is ``width - 4`` cells wide (capped by ``max_width``); content rows
    get one cell of padding on each side inside the border.
    """

    def __init__(self, theme: Theme, width: int, max_width: Optional[int] = None):
        self.theme = theme
        total = width - 4
        if max_width is not None:
            total = min(max_width, total)
        self.total_width = max(total, 6)
        self.inner_width = self.total_width - 4
        self._hline = "─" * (self.total_width - 2)

    # Theme shortcuts used by every panel
    def dim(self, text: str) -> str:
        return self.theme.fg("muted", text)

    def accent(self, text: str) -> str:
        return self.theme.fg("accent", text)

    def bold(self, text: str) -> str:
        return self.theme.bold(text)

    def top(self) -> str:
        return self.dim(f"╭{self._hline}╮")

    def divider(self) -> str:
        return self.dim(f"├{self._hline}┤")

    def bottom(self) -> str:
        return self.dim(f"╰{self._hline}╯")

    def row(self, content: str = "") -> str:
        pad = max(0, self.inner_width - visible_width(content))
        return self.dim("│ ") + content + " " * pad + self.dim(" │")

    def frame(self, title: str, body: List[str], hint: str) -> List[str]:
        """Title, divider, body rows, divider, hint, closed off at the bottom."""
        lines = [self.top(), self.row(self.bold(self.accent(title))), self.divider()]
        lines.extend(body)
        lines.append(self.divider())
        lines.append(self.row(self.dim(hint)))
        lines.append(self.bottom())
        return lines
