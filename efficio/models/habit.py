"""Habit records mirrored from the workspace habit tracker."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Habit:
    id: str
    habit: str
    description: str = ""
    do_now: bool = False


__all__ = ["Habit"]
