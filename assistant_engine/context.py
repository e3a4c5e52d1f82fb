"""Short-term conversation memory used by the correction rules."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from assistant_engine.schema import Recipient

HISTORY_LIMIT = 15


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    text: str
    domain: Optional[Recipient] = None


@dataclass
class ConversationContext:
    user_id: str
    turns: deque = field(default_factory=lambda: deque(maxlen=HISTORY_LIMIT))
    facts: dict = field(default_factory=dict)

    def add_turn(self, role: str, text: str, domain: Optional[Recipient] = None) -> None:
        self.turns.append(ConversationTurn(role, text, domain))

    def recent_domain(self) -> Optional[Recipient]:
        """Domain of the latest turn that touched the calendar or tasks."""

        for turn in reversed(self.turns):
            if turn.domain in (Recipient.CALENDAR, Recipient.TASK):
                return turn.domain
        return None

    def transcript(self, limit: int = 6) -> str:
        recent = list(self.turns)[-limit:]
        return "\n".join(f"{turn.role}: {turn.text}" for turn in recent)
