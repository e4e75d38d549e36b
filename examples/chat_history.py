"""
Chat History: Steps, Versions and Resume

Three steps over a message history and a scratch "query" channel:

```text
step 0:  user ──────┐
                    ├── messages += [question], query = "weather?"
         router ────┘
step 1:  agent ─────── messages += [answer]
         search ────── fails twice, succeeds on the third attempt
step 2:  editor ────── replaces the answer in place, deletes the question
```

After step 0 a checkpoint is taken. The engine is then restored from it
and step 1 is replayed. The replay reports the same new channel versions
as the original run.

Run with:
```bash
PYTHONPATH=src python examples/chat_history.py
```
"""

import asyncio
import logging

from pychannels import (
    Channel,
    Entry,
    NodeTask,
    ReducerKind,
    RemoveEntry,
    RetryableError,
    RetryPolicy,
    StateEngine,
    run_step,
)


class SearchUnavailable(RetryableError):
    pass


def channels() -> list[Channel]:
    return [
        Channel("messages", ReducerKind.IDENTITY_SEQUENCE),
        Channel("query"),
        Channel("sources", ReducerKind.APPEND),
    ]


def step_one_tasks() -> list[NodeTask]:
    attempts = {"search": 0}

    async def agent():
        await asyncio.sleep(0.01)
        return [Entry("Sunny, 21°C", id="answer")]

    async def search():
        attempts["search"] += 1
        if attempts["search"] < 3:
            raise SearchUnavailable(f"attempt {attempts['search']}")
        return {"sources": ["weather.example"]}

    return [
        NodeTask("agent", agent, triggers=("messages",)),
        NodeTask(
            "search",
            search,
            triggers=("query",),
            retry_policy=RetryPolicy(initial_interval=10, max_attempts=3),
        ),
    ]


async def main() -> None:
    engine = StateEngine(channels(), default_channel="messages")

    print("=" * 60)
    print("Step 0: user question + router")
    report = await run_step(
        engine,
        [
            NodeTask("user", lambda: [Entry("What's the weather?", id="question")]),
            NodeTask("router", lambda: {"query": "weather?"}),
        ],
    )
    print(f"   new versions: {report.new_versions.to_dict()}")
    saved = engine.checkpoint()

    print("Step 1: agent + flaky search")
    original = await run_step(engine, step_one_tasks())
    print(f"   new versions: {original.new_versions.to_dict()}")

    print("Step 2: editor rewrites history")
    await run_step(
        engine,
        [NodeTask("editor", lambda: [RemoveEntry("question"), Entry("Sunny, 22°C", id="answer")])],
    )
    for entry in engine.values()["messages"]:
        print(f"   [{entry.id}] {entry.content}")

    print("Resume from step 0 checkpoint and replay step 1")
    resumed = StateEngine.restore(channels(), saved, default_channel="messages")
    replayed = await run_step(resumed, step_one_tasks())
    print(f"   replayed new versions: {replayed.new_versions.to_dict()}")
    print(f"   identical to original: {replayed.new_versions == original.new_versions}")
    print("=" * 60)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
