import asyncio

from deepscan.core.progress import ProgressSimulator


def test_step_math():
    sim = ProgressSimulator(on_tick=lambda p, e: None)
    sim.progress = 0.0
    sim.eta = 15.0

    progress, eta = sim.step()
    assert abs(progress - 4.5) < 1e-9  # (90 - 0) * 0.05
    assert eta == 15  # ceil(14.5)

    progress, eta = sim.step()
    assert abs(progress - (4.5 + (90 - 4.5) * 0.05)) < 1e-9
    assert eta == 14


def test_progress_never_reaches_ceiling_and_eta_floored():
    sim = ProgressSimulator(on_tick=lambda p, e: None)
    sim.progress = 0.0
    sim.eta = 5.0

    last = 0.0
    for _ in range(500):
        progress, eta = sim.step()
        assert last <= progress < 90
        assert eta >= 2
        last = progress
    assert sim.eta == 2.0


def test_ticks_and_stops_on_exit():
    ticks = []

    async def scenario():
        sim = ProgressSimulator(on_tick=lambda p, e: ticks.append((p, e)), interval=0.01)
        async with sim.running(45):
            await asyncio.sleep(0.08)
            assert sim.is_running
        assert not sim.is_running
        count = len(ticks)
        await asyncio.sleep(0.05)
        return count

    count = asyncio.run(scenario())
    assert count >= 2
    assert len(ticks) == count  # no ticks after stop
    progresses = [p for p, _ in ticks]
    assert progresses == sorted(progresses)


def test_stopped_when_block_raises():
    async def scenario():
        sim = ProgressSimulator(on_tick=lambda p, e: None, interval=0.01)
        try:
            async with sim.running(10):
                raise RuntimeError("provider blew up")
        except RuntimeError:
            pass
        return sim.is_running

    assert asyncio.run(scenario()) is False


def test_failing_callback_does_not_stop_ticker():
    calls = []

    def flaky(progress, eta):
        calls.append(progress)
        if len(calls) == 1:
            raise ValueError("boom")

    async def scenario():
        sim = ProgressSimulator(on_tick=flaky, interval=0.01)
        async with sim.running(10):
            await asyncio.sleep(0.06)

    asyncio.run(scenario())
    assert len(calls) >= 2
