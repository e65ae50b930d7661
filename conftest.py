"""
Shared pytest fixtures: a virtual-clock scheduler and a scripted chat backend.
"""

import asyncio
import json

import pytest

from agent.coordinator import ConversationCoordinator
from agent.orchestrator import Orchestrator
from agent.session import ChatBackend
from agent.timers import DelayedCall, Scheduler, TimerRegistry
from conversations import ConversationStore
from scene import Scene


class ManualScheduler(Scheduler):
    """Scheduler whose clock only moves when a test calls advance()."""

    def __init__(self):
        self.now = 0.0
        self._calls = []
        self._seq = 0
        self.spawned = []

    def call_later(self, delay, callback):
        handle = DelayedCall()
        self._seq += 1
        self._calls.append((self.now + delay, self._seq, handle, callback))
        return handle

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [c for c in self._calls if c[0] <= target and c[2].active]
            if not due:
                break
            call = min(due, key=lambda c: (c[0], c[1]))
            self._calls.remove(call)
            self.now = call[0]
            call[2].fired = True
            call[3]()
        self.now = target
        self._calls = [c for c in self._calls if c[2].active]

    @property
    def pending_calls(self):
        return sum(1 for c in self._calls if c[2].active)

    def spawn(self, coro):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.spawned.append(coro)
            return coro
        task = loop.create_task(coro)
        self.spawned.append(task)
        return task

    async def settle(self):
        """Run spawned coroutines (and whatever they spawn) to completion."""
        while True:
            self.spawned = [
                asyncio.ensure_future(s) if asyncio.iscoroutine(s) else s for s in self.spawned
            ]
            pending = [t for t in self.spawned if not t.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        for _ in range(3):
            await asyncio.sleep(0)


# ------------------------------------------------------------------
# Scripted backend
# ------------------------------------------------------------------

def text(s):
    return {"type": "text", "content": s}


def tool_call(name, call_id, args):
    return [
        {"type": "tool_use_start", "content": "", "data": {"id": call_id, "name": name}},
        {"type": "tool_use_delta", "content": json.dumps(args)},
        {"type": "tool_use_end", "content": ""},
    ]


def end(stop_reason="end_turn"):
    return {"type": "message_end", "content": "", "stop_reason": stop_reason}


def step(*items):
    """Flatten text chunks and tool_call() lists into one scripted model step."""
    chunks = []
    for item in items:
        if isinstance(item, list):
            chunks.extend(item)
        else:
            chunks.append(item)
    return chunks


class FakeBackend(ChatBackend):
    """Plays one script per model step; an Exception script raises instead."""

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.calls = []

    def add(self, *scripts):
        self.scripts.extend(scripts)

    async def stream(self, messages, system_prompt, tools, tool_choice=None, background=False):
        self.calls.append({
            "messages": messages,
            "system_prompt": system_prompt,
            "tools": tools,
            "tool_choice": tool_choice,
            "background": background,
        })
        script = self.scripts.pop(0) if self.scripts else [text("Done."), end()]
        if isinstance(script, Exception):
            raise script
        for chunk in script:
            if callable(chunk):
                await chunk()
                continue
            await asyncio.sleep(0)
            yield chunk


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def timers(scheduler):
    return TimerRegistry(scheduler)


@pytest.fixture
def scene(timers):
    return Scene(timers=timers, highlight_ms=2000)


@pytest.fixture
def store(tmp_path, scheduler):
    return ConversationStore(str(tmp_path), scheduler=scheduler, debounce_ms=500)


@pytest.fixture
def coordinator(store, scheduler):
    return ConversationCoordinator(store, scheduler=scheduler)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def orchestrator(backend, store, scheduler):
    orch = Orchestrator(backend, store, scheduler)
    orch.load()
    return orch
