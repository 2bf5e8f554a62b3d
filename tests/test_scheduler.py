"""
Frame Scheduler Tests — lifecycle, tick ordering, async loop.
"""

import sys
import os
import asyncio
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from controller import CourtController, Surface
from scheduler import FrameScheduler, SchedulerState


class Recorder:
    """advance/render pair that logs every call in order."""

    def __init__(self, surface=Surface(800.0, 600.0)):
        self.calls = []
        self.surface = surface

    def advance(self, w, h):
        self.calls.append(("advance", w, h))

    def render(self, surface):
        self.calls.append(("render", surface.width, surface.height))
        return "drawn"

    def scheduler(self, **kw):
        return FrameScheduler(self.advance, self.render, lambda: self.surface, **kw)


# ── Synchronous ticking ──────────────────────────────────

class TestTick:

    def test_step_then_draw(self):
        rec = Recorder()
        sched = rec.scheduler()
        sched.start()
        assert sched.tick() == "drawn"
        sched.tick()
        assert rec.calls == [
            ("advance", 800.0, 600.0), ("render", 800.0, 600.0),
            ("advance", 800.0, 600.0), ("render", 800.0, 600.0),
        ]
        assert sched.frames == 2

    def test_idle_tick_is_a_no_op(self):
        rec = Recorder()
        sched = rec.scheduler()
        assert sched.tick() is None
        assert rec.calls == []
        assert sched.state is SchedulerState.IDLE

    def test_reads_surface_every_frame(self):
        rec = Recorder()
        sched = rec.scheduler()
        sched.start()
        sched.tick()
        rec.surface = Surface(320.0, 240.0)
        sched.tick()
        assert rec.calls[-2] == ("advance", 320.0, 240.0)

    def test_missing_surface_stops_silently(self):
        rec = Recorder(surface=None)
        sched = rec.scheduler()
        sched.start()
        assert sched.tick() is None
        assert rec.calls == []
        assert sched.state is SchedulerState.STOPPED

    def test_drives_controller(self):
        ctrl = CourtController(seed=5)
        ball = ctrl.spawn(400.0, 100.0)
        drawn = []
        sched = FrameScheduler(ctrl.step, lambda s: drawn.append(ctrl.snapshot()),
                               lambda: ctrl.surface)
        sched.start()
        for _ in range(10):
            sched.tick()
        assert len(drawn) == 10
        assert drawn[-1] == (ball,)
        assert ball.position[1] != 100.0


# ── Lifecycle ────────────────────────────────────────────

class TestLifecycle:

    def test_stop_is_terminal(self):
        rec = Recorder()
        sched = rec.scheduler()
        sched.start()
        sched.tick()
        sched.stop()
        assert sched.tick() is None
        assert len(rec.calls) == 2
        assert not sched.running

    def test_cannot_restart(self):
        sched = Recorder().scheduler()
        sched.start()
        sched.stop()
        with pytest.raises(RuntimeError):
            sched.start()

    def test_cannot_start_twice(self):
        sched = Recorder().scheduler()
        sched.start()
        with pytest.raises(RuntimeError):
            sched.start()

    def test_stop_is_idempotent(self):
        sched = Recorder().scheduler()
        sched.stop()
        sched.stop()
        assert sched.state is SchedulerState.STOPPED


# ── Async loop ───────────────────────────────────────────

class TestAsyncLoop:

    def test_runs_until_stopped(self):
        rec = Recorder()
        sched = rec.scheduler(fps=200)

        async def main():
            sched.start_async()
            await asyncio.sleep(0.1)
            sched.stop()
            frames = sched.frames
            await asyncio.sleep(0.05)
            return frames

        frames_at_stop = asyncio.run(main())
        assert frames_at_stop > 0
        assert sched.frames == frames_at_stop

    def test_awaits_async_render_without_overlap(self):
        active = []
        overlaps = []

        async def render(surface):
            if active:
                overlaps.append(True)
            active.append(1)
            await asyncio.sleep(0.005)
            active.pop()

        sched = FrameScheduler(lambda w, h: None, render,
                               lambda: Surface(800.0, 600.0), fps=500)

        async def main():
            sched.start_async()
            await asyncio.sleep(0.1)
            sched.stop()

        asyncio.run(main())
        assert sched.frames > 1
        assert overlaps == []

    def test_loop_ends_when_surface_disappears(self):
        ctrl = CourtController(seed=2)
        sched = FrameScheduler(ctrl.step, lambda s: None, lambda: ctrl.surface, fps=200)

        async def main():
            task = sched.start_async()
            await asyncio.sleep(0.05)
            ctrl.detach_surface()
            await asyncio.wait_for(task, timeout=1.0)

        asyncio.run(main())
        assert sched.state is SchedulerState.STOPPED
