"""Analyze a knowledge snapshot file and print a JSON intelligence report."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from assistant_engine.adapters import json_adapter
from assistant_engine.bus import MessageBus
from assistant_engine.config import Settings
from assistant_engine.coordinator import IntelligenceCoordinator
from assistant_engine.knowledge import InMemoryKnowledgeStore
from assistant_engine.store import IntelligenceStore


async def _analyze(data_path: Path, user_id: str, engines: list[str]) -> dict:
    snapshot = json_adapter.parse(str(data_path))
    bus = MessageBus()
    knowledge = InMemoryKnowledgeStore(bus)
    store = IntelligenceStore().open()
    coordinator = IntelligenceCoordinator(store, bus, knowledge, settings=Settings(reconcile_interval_seconds=3600))

    await coordinator.start_user_intelligence(user_id)
    # Replay records so every event-task pair gets scored.
    for event in snapshot.events:
        knowledge.record_event(user_id, event)
    for task in snapshot.tasks:
        knowledge.record_task(user_id, task)
    await coordinator.reconcile(store.get_session(user_id))

    report = coordinator.get_user_intelligence(user_id)
    report["engines"] = coordinator.run_engines(user_id, engines)
    await coordinator.shutdown()
    store.close()
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description="Run correlation, lifecycle and analysis engines on a snapshot")
    parser.add_argument("--data", required=True, help="Path to a JSON snapshot with 'tasks' and 'events'")
    parser.add_argument("--user", default="local", help="User id to analyze as")
    parser.add_argument(
        "--engines",
        default="productivity,workflow,time_management,techniques",
        help="Comma-separated analysis engines to run",
    )
    parser.add_argument("--out", help="Optional path to also write the report to")
    args = parser.parse_args()

    engines = [name.strip() for name in args.engines.split(",") if name.strip()]
    report = asyncio.run(_analyze(Path(args.data), args.user, engines))
    text = json.dumps(report, indent=2, default=str)
    print(text)

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        print(f"Saved report to {out_path}")


if __name__ == "__main__":
    main()
