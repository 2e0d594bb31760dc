# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Extensions for the pi coding agent: quota panels, account switching,
cost reports and extra model providers.
"""

import logging

from .extensions import EXTENSIONS, register_all

# Library code never configures handlers; the host application does.
logging.getLogger("pi_extensions").addHandler(logging.NullHandler())

__all__ = ["EXTENSIONS", "register_all"]
