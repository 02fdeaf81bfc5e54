"""A tiny single-threaded executor for coroutines, woken from other threads."""

from __future__ import annotations

import argparse
import queue
import threading
import time
from collections import deque
from typing import Any, Coroutine, Deque, Generator, List, Optional, Set

_Coroutine = Coroutine[Any, Any, None]


class Task:
    """A spawned coroutine that the executor polls whenever it is woken."""

    def __init__(self, coroutine: _Coroutine, scheduler: "queue.Queue[Task]") -> None:
        self._coroutine = coroutine
        self._scheduler = scheduler
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        """Whether the coroutine has finished."""
        return self._done

    def poll(self) -> None:
        """Run the coroutine until it next waits; a finished task is left alone."""
        if not self._lock.acquire(blocking=False):
            raise RuntimeError("task is already being polled")
        try:
            if self._done:
                return
            try:
                waiting = self._coroutine.send(None)
            except StopIteration:
                self._done = True
                return
            except BaseException:
                self._done = True
                raise
            if waiting is None:
                self.wake()
            elif isinstance(waiting, _Notified):
                waiting.subscribe(self)
            else:
                self._done = True
                self._coroutine.close()
                raise TypeError(f"cannot wait on {waiting!r}")
        finally:
            self._lock.release()

    def wake(self) -> None:
        """Schedule the task to be polled again."""
        self._scheduler.put(self)


class MiniTokio:
    """Runs spawned coroutines until all of them have finished."""

    def __init__(self) -> None:
        self._scheduled: "queue.Queue[Task]" = queue.Queue()
        self._live: Set[Task] = set()

    def spawn(self, coroutine: _Coroutine) -> Task:
        """Add a coroutine to run and return its task."""
        task = Task(coroutine, self._scheduled)
        self._live.add(task)
        task.wake()
        return task

    def run(self) -> None:
        """Poll woken tasks until none is left unfinished."""
        while self._live:
            task = self._scheduled.get()
            try:
                task.poll()
            finally:
                if task.done:
                    self._live.discard(task)


class _Notified:
    """The awaitable returned by Notify.notified()."""

    def __init__(self, notify: "Notify") -> None:
        self._notify = notify
        self._woken = False
        self._task: Optional[Task] = None

    def __await__(self) -> Generator["_Notified", None, None]:
        while not self._woken:
            yield self

    def subscribe(self, task: Task) -> None:
        notify = self._notify
        with notify._lock:
            if not self._woken and notify._permit:
                notify._permit = False
                self._woken = True
            if not self._woken:
                self._task = task
                if self not in notify._waiters:
                    notify._waiters.append(self)
                return
        task.wake()


class Notify:
    """Wakes one waiting task; a notification with no waiter is kept for the next one."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._permit = False
        self._waiters: Deque[_Notified] = deque()

    def notify_one(self) -> None:
        """Wake the oldest waiter, or store a permit if nobody waits."""
        with self._lock:
            if not self._waiters:
                self._permit = True
                return
            waiter = self._waiters.popleft()
            waiter._woken = True
            task = waiter._task
        if task is not None:
            task.wake()

    def notified(self) -> _Notified:
        """Return an awaitable that completes once this task is notified."""
        return _Notified(self)


async def delay(seconds: float) -> None:
    """Wait ``seconds`` using a timer thread that notifies the waiting task."""
    when = time.monotonic() + seconds
    notify = Notify()

    def timer() -> None:
        remaining = when - time.monotonic()
        if remaining > 0:
            time.sleep(remaining)
        notify.notify_one()

    threading.Thread(target=timer, daemon=True).start()
    await notify.notified()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a delayed greeting on the mini executor.")
    parser.parse_args(argv)

    async def greet() -> None:
        await delay(0.01)
        print("Hello world")

    mini_tokio = MiniTokio()
    mini_tokio.spawn(greet())
    mini_tokio.run()
    return 0