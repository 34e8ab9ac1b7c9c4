import asyncio

from assessment.services.question_timer import QuestionTimer, TimerState


def test_expiry_fires_once_per_question() -> None:
    fired: list[int] = []

    async def scenario() -> list[bool]:
        async def on_expire() -> None:
            fired.append(1)

        timer = QuestionTimer(on_expire, duration_seconds=60)
        timer.reset()
        results = [await timer.expire(), await timer.expire(), await timer.expire()]
        timer.stop()
        return results

    results = asyncio.run(scenario())

    assert results == [True, False, False]
    assert fired == [1]


def test_concurrent_expiry_fires_once() -> None:
    fired: list[int] = []

    async def scenario() -> None:
        async def on_expire() -> None:
            fired.append(1)
            await asyncio.sleep(0)

        timer = QuestionTimer(on_expire, duration_seconds=60)
        timer.reset()
        await asyncio.gather(timer.expire(), timer.expire())
        assert timer.state is TimerState.FIRED
        timer.stop()

    asyncio.run(scenario())
    assert fired == [1]


def test_reset_rearms_after_firing() -> None:
    fired: list[int] = []

    async def scenario() -> None:
        async def on_expire() -> None:
            fired.append(1)

        timer = QuestionTimer(on_expire, duration_seconds=60)
        timer.reset()
        await timer.expire()
        timer.reset(30)
        assert timer.state is TimerState.RUNNING
        assert timer.remaining == 30
        await timer.expire()
        timer.stop()

    asyncio.run(scenario())
    assert fired == [1, 1]


def test_stopped_timer_never_fires() -> None:
    fired: list[int] = []

    async def scenario() -> bool:
        async def on_expire() -> None:
            fired.append(1)

        timer = QuestionTimer(on_expire, duration_seconds=60)
        timer.reset()
        timer.stop()
        return await timer.expire()

    assert asyncio.run(scenario()) is False
    assert fired == []


def test_countdown_ticks_to_zero_and_fires() -> None:
    ticks: list[int] = []
    fired: list[int] = []

    async def scenario() -> TimerState:
        async def on_expire() -> None:
            fired.append(1)

        timer = QuestionTimer(
            on_expire, duration_seconds=3, tick_seconds=0.001, on_tick=ticks.append
        )
        timer.reset()
        for _ in range(200):
            if fired:
                break
            await asyncio.sleep(0.005)
        return timer.state

    assert asyncio.run(scenario()) is TimerState.FIRED
    assert ticks == [2, 1, 0]
    assert fired == [1]


def test_reset_to_zero_is_idle() -> None:
    async def scenario() -> TimerState:
        async def on_expire() -> None:
            return None

        timer = QuestionTimer(on_expire, duration_seconds=60)
        timer.reset(0)
        return timer.state

    assert asyncio.run(scenario()) is TimerState.IDLE
