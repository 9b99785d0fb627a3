"""Entry point for `python -m kubeinfo`.

Usage:
    python -m kubeinfo
"""

from __future__ import annotations

import asyncio

from kubeinfo.app import main

asyncio.run(main())
