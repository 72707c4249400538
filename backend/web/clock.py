"""
Injectable "today" for schedule views.

Routes never call `date.today()` directly; tests pin the calendar day with
`set_today_provider(lambda: date(2024, 6, 12))` and reset it with `None`.
"""
from __future__ import annotations

from datetime import date
from typing import Callable, Optional

_provider: Optional[Callable[[], date]] = None


def today() -> date:
    if _provider is not None:
        return _provider()
    return date.today()


def set_today_provider(provider: Optional[Callable[[], date]]) -> None:
    global _provider
    _provider = provider
