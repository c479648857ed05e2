"""Entry point for `python -m kusanagi`.

Usage:
    python -m kusanagi
    uv run python -m kusanagi
"""

from __future__ import annotations

import asyncio

from kusanagi.app import main

asyncio.run(main())
