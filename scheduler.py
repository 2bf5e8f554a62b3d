"""
FrameScheduler — drives the step-then-draw cycle at display rate.

Two ways to run it:
  sched.start(); host calls sched.tick() once per display frame   (Ursina update())
  await sched.start_async()  — own asyncio task at TARGET_FPS     (server.py)

Either way sched.stop() is terminal: a stopped scheduler never steps again.
"""

import asyncio
import enum
import inspect
import time

TARGET_FPS = 60


class SchedulerState(enum.Enum):
    IDLE = 0
    RUNNING = 1
    STOPPED = 2


class FrameScheduler:
    """Idle -> Running -> Stopped frame loop around an injected advance callback.

    Args:
        advance: ``advance(width, height)`` — one simulation step.
        render:  ``render(surface)`` — draw the current state. May return an
                 awaitable; the async loop awaits it before the next frame.
        surface: zero-arg callable returning an object with ``width`` and
                 ``height``, or ``None`` once the render target is gone.
        fps:     frame rate of the async loop.
    """

    def __init__(self, advance, render, surface, fps: float = TARGET_FPS):
        self._advance = advance
        self._render = render
        self._surface = surface
        self.frame_dt = 1.0 / fps
        self.state = SchedulerState.IDLE
        self.frames = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.state is SchedulerState.RUNNING

    # ──────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────
    def start(self) -> None:
        """Idle -> Running. The host clock is expected to call tick()."""
        if self.state is not SchedulerState.IDLE:
            raise RuntimeError(f"scheduler cannot start from {self.state.name}")
        self.state = SchedulerState.RUNNING
        print("[LOOP] started")

    def start_async(self) -> asyncio.Task:
        """Idle -> Running with a frame task on the current event loop."""
        self.start()
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def stop(self) -> None:
        """Running -> Stopped; cancels the pending frame if there is one."""
        if self.state is SchedulerState.STOPPED:
            return
        self.state = SchedulerState.STOPPED
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        print(f"[LOOP] stopped after {self.frames} frames")

    # ──────────────────────────────────────────
    # Frame
    # ──────────────────────────────────────────
    def tick(self):
        """One step followed by one draw.

        Returns whatever ``render`` returned. Does nothing while not running.
        A missing surface ends the loop without raising.
        """
        if self.state is not SchedulerState.RUNNING:
            return None
        surface = self._surface()
        if surface is None:
            self.state = SchedulerState.STOPPED
            self._task = None
            return None

        self._advance(surface.width, surface.height)
        self.frames += 1
        return self._render(surface)

    async def _run(self) -> None:
        """Main frame loop running at ~fps; one tick finishes before the next."""
        while self.state is SchedulerState.RUNNING:
            now = time.perf_counter()

            rendered = self.tick()
            if inspect.isawaitable(rendered):
                await rendered
            if self.state is not SchedulerState.RUNNING:
                break

            # Sleep to maintain target FPS
            elapsed = time.perf_counter() - now
            sleep_time = self.frame_dt - elapsed
            if sleep_time > 0:
                await asyncio.sleep(sleep_time)
            else:
                await asyncio.sleep(0)
