"""Pydantic schema for user-facing notifications."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

NotificationLevel = Literal["success", "info", "warning", "error"]


class Notification(BaseModel):
    """Human-readable outcome of an operation."""

    level: NotificationLevel
    message: str
