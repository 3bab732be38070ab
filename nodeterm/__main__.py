"""Entry point for `python -m nodeterm`.

Usage:
    python -m nodeterm
"""

from __future__ import annotations

import asyncio

from nodeterm.app import main

asyncio.run(main())
