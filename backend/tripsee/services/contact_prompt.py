"""
Schedule for the "plan your trip" contact prompt.

The prompt appears one interval after the visitor arrives and again one
interval after each close. "Don't show again" is a flag, not a timestamp.
Admin pages never show it.
"""

from dataclasses import dataclass, field
from typing import Optional

from tripsee.core.config import settings


@dataclass
class ContactPromptSchedule:
    interval_seconds: float = field(default_factory=lambda: float(settings.contact_prompt_interval_seconds))
    started_at: Optional[float] = None
    last_closed_at: Optional[float] = None
    visible: bool = False
    suppressed: bool = False

    def start(self, now: float) -> None:
        self.started_at = now
        self.last_closed_at = None
        self.visible = False

    def stop(self) -> None:
        self.started_at = None
        self.visible = False

    def next_due_at(self) -> Optional[float]:
        if self.suppressed or self.started_at is None or self.visible:
            return None
        anchor = self.last_closed_at if self.last_closed_at is not None else self.started_at
        return anchor + self.interval_seconds

    def tick(self, now: float, path: str = "/") -> bool:
        """Advance the clock; returns whether the prompt is showing afterwards."""
        if path.startswith("/admin"):
            return False
        due = self.next_due_at()
        if due is not None and now >= due:
            self.visible = True
        return self.visible

    def close(self, now: float) -> None:
        self.visible = False
        self.last_closed_at = now

    def dont_show_again(self) -> None:
        self.visible = False
        self.suppressed = True
