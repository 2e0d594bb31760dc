# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Terminal key decoding for panel input handlers."""

from typing import Dict, Tuple


class Key:
    """Named keys understood by ``matches_key``."""

    escape = "escape"
    up = "up"
    down = "down"
    left = "left"
    right = "right"
    enter = "enter"
    backspace = "backspace"
    tab = "tab"


# Raw byte sequences a terminal sends for each named key (normal and
# application cursor mode)
KEY_SEQUENCES: Dict[str, Tuple[str, ...]] = {
    Key.escape: ("\x1b",),
    Key.up: ("\x1b[A", "\x1bOA"),
    Key.down: ("\x1b[B", "\x1bOB"),
    Key.right: ("\x1b[C", "\x1bOC"),
    Key.left: ("\x1b[D", "\x1bOD"),
    Key.enter: ("\r", "\n", "\r\n"),
    Key.backspace: ("\x7f", "\x08"),
    Key.tab: ("\t",),
}


def matches_key(data: str, name: str) -> bool:
    """
    Whether raw input ``data`` is the key ``name``.

    Named keys are matched against their escape sequences; any other name is
    a single printable character compared literally.
    """
    sequences = KEY_SEQUENCES.get(name)
    if sequences is not None:
        return data in sequences
    return len(name) == 1 and data == name


def sequence_for(name: str) -> str:
    """Primary raw sequence for a named key, or the character itself."""
    return KEY_SEQUENCES.get(name, (name,))[0]
