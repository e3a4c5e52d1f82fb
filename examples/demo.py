"""Demo script for assistant-engine with scripted classification and in-memory handlers."""

import asyncio
import json
import sys
from itertools import count
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from assistant_engine.adapters.json_adapter import parse
from assistant_engine.assistant import build_assistant
from assistant_engine.bus import MessageBus
from assistant_engine.config import Settings
from assistant_engine.context import ConversationContext
from assistant_engine.knowledge import InMemoryKnowledgeStore

SCRIPTED_REPLIES = {
    "Schedule a sync with Ana tomorrow at 2pm": {"Recipient": "calendar", "RequestType": "create_event", "Message": "Sync with Ana tomorrow 2pm"},
    "Move it to 3pm": "Sure, noted.",
    "Remind me to send the invoice": {"Recipient": "calendar", "RequestType": "create_event", "Message": "Send the invoice"},
    "What can the task handler do?": "I'm not sure.",
    "Any tips to be more productive with my tasks?": "Let me look.",
}


class ScriptedBackend:
    async def classify(self, prompt: str) -> str:
        message = prompt.rsplit("User message:\n", 1)[-1]
        reply = SCRIPTED_REPLIES.get(message, "Happy to help.")
        return reply if isinstance(reply, str) else json.dumps(reply)


class RecordingHandler:
    def __init__(self, kind, knowledge, user_id):
        self.kind = kind
        self.knowledge = knowledge
        self.user_id = user_id
        self.ids = count(100)

    async def create(self, detail, user_id):
        record_id = f"{self.kind[0]}{next(self.ids)}"
        if self.kind == "event":
            self.knowledge.record_event(user_id, {"id": record_id, "summary": detail["message"]})
        else:
            self.knowledge.record_task(user_id, {"id": record_id, "title": detail["message"], "status": "needsAction"})
        return {"message_to_user": f"Created {self.kind} '{detail['message']}'.", "id": record_id}

    async def get(self, detail, user_id):
        return {"message": f"No matching {self.kind}s found."}

    async def update(self, detail, user_id):
        return {"message": f"Updated the {self.kind}: {detail['message']}"}

    async def delete(self, detail, user_id):
        return {"message": f"Deleted the {self.kind}."}


async def main() -> None:
    user_id = "demo-user"
    bus = MessageBus()
    knowledge = InMemoryKnowledgeStore(bus)
    knowledge.load_snapshot(user_id, parse(str(Path(__file__).with_name("sample_snapshot.json"))))

    assistant = build_assistant(
        calendar=RecordingHandler("event", knowledge, user_id),
        tasks=RecordingHandler("task", knowledge, user_id),
        knowledge=knowledge,
        backend=ScriptedBackend(),
        settings=Settings(reconcile_interval_seconds=3600),
        bus=bus,
    )
    await assistant.coordinator.start_user_intelligence(user_id)

    context = ConversationContext(user_id)
    for message in SCRIPTED_REPLIES:
        reply = await assistant.process_message(user_id, message, context)
        print(f"> {message}\n[{reply['agent']}] {reply['message']}\n")

    print("Intelligence:", json.dumps(assistant.coordinator.get_user_intelligence(user_id)["insights"], indent=2))
    await assistant.coordinator.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
