"""CalQ - categorized calendar dashboard with daily email digests"""

from __future__ import annotations

__version__ = "1.0.0"
