"""Configuration package for url-chat.

Re-exports the settings accessor so that callers can write::

    from url_chat.config import get_settings
"""

from __future__ import annotations

from url_chat.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
