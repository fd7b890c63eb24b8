"""
Version for tokenledger.

`TOKENLEDGER_VERSION` overrides the built-in value (useful for builds stamped
from CI tags).
"""

from __future__ import annotations

import os

DEFAULT_VERSION = "0.1.0"

__version__ = os.environ.get("TOKENLEDGER_VERSION", "").strip() or DEFAULT_VERSION

__all__ = ["__version__", "DEFAULT_VERSION"]
