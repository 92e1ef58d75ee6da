from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionResolution:
    session_id: str
    is_new: bool
