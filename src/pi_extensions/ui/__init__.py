# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .keys import Key, matches_key, sequence_for
from .panel import BoxRenderer, visible_width

__all__ = ["BoxRenderer", "Key", "matches_key", "sequence_for", "visible_width"]
