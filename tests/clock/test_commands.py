"""
Command Surface Tests.

start / pause / resume / finish / update-level 제어 명령 테스트.
"""

import asyncio
from datetime import timedelta

import pytest

from pokerclock.clock.commands import level_from, parse_control_event
from pokerclock.clock.models import ControlEvent, ControlType
from pokerclock.clock.schemas import TimingFacts
from pokerclock.utils.errors import BackendUnavailableError, InvalidCommandError
from tests.conftest import T0, add_subscriber, make_record, make_snapshot


def control_messages(ws) -> list[dict]:
    return [m["payload"] for m in ws.of_type("tournament-control")]


class TestParsing:
    def test_parse_control_event(self):
        event = parse_control_event(42, "update-level", {"level": 3})

        assert event == ControlEvent("42", ControlType.UPDATE_LEVEL, {"level": 3})

    def test_missing_tournament_id(self):
        with pytest.raises(InvalidCommandError):
            parse_control_event("", "start")

    def test_unknown_type(self):
        with pytest.raises(InvalidCommandError) as exc_info:
            parse_control_event("T1", "rewind")

        assert exc_info.value.code == "INVALID_COMMAND"
        assert "start" in exc_info.value.details["allowed"]

    def test_data_must_be_object(self):
        with pytest.raises(InvalidCommandError):
            parse_control_event("T1", "start", ["not", "a", "dict"])

    @pytest.mark.parametrize("data, expected", [({"level": 3}, 3), ({"level": "4"}, 4), ({"currentLevel": 2}, 2)])
    def test_level_from(self, data, expected):
        assert level_from(data) == expected

    @pytest.mark.parametrize("data", [{}, {"level": 0}, {"level": "x"}, {"level": True}])
    def test_level_from_rejects(self, data):
        with pytest.raises(InvalidCommandError):
            level_from(data)


class TestStart:
    @pytest.mark.asyncio
    async def test_start_asks_backend_and_seeds(self, commands, registry, backend, manager):
        backend.start_results["T1"] = make_snapshot("T1", levels=[(1, 60), (2, 60)])
        _, ws = await add_subscriber(manager, "T1")

        record = await commands.start("T1")

        assert backend.start_calls == ["T1"]
        assert registry.get("T1") is record
        assert record.is_ticking
        assert control_messages(ws) == [{"type": "start", "data": {"level": 1}}]

    @pytest.mark.asyncio
    async def test_start_backend_failure(self, commands, registry):
        with pytest.raises(BackendUnavailableError):
            await commands.start("T1")

        assert not registry.has("T1")

    @pytest.mark.asyncio
    async def test_start_with_facts_skips_backend(self, commands, registry, backend):
        facts = TimingFacts.model_validate(
            {"startTime": T0.isoformat(), "levels": [{"levelNumber": 1, "durationSeconds": 60}]}
        )

        record = await commands.start("T1", facts)

        assert backend.start_calls == []
        assert registry.get("T1") is record

    @pytest.mark.asyncio
    async def test_start_with_incomplete_facts(self, commands, registry):
        with pytest.raises(InvalidCommandError):
            await commands.start("T1", TimingFacts(levels=[]))

        assert not registry.has("T1")

    @pytest.mark.asyncio
    async def test_restart_keeps_single_timer(self, commands, registry, backend):
        backend.start_results["T1"] = make_snapshot("T1")

        first = await commands.start("T1")
        first_task = first.timer_handle
        second = await commands.start("T1")
        await asyncio.sleep(0)

        assert first_task.cancelled()
        assert registry.get("T1") is second
        assert second.is_ticking


class TestPauseResume:
    @pytest.mark.asyncio
    async def test_pause_stops_clock_and_notifies(
        self, commands, scheduler, registry, backend, manager, gateway
    ):
        _, ws = await add_subscriber(manager, "T1")
        task = scheduler.seed(make_record("T1"))

        await commands.pause("T1")
        await gateway.drain()
        await asyncio.sleep(0)

        assert task.cancelled()
        assert not registry.has("T1")
        assert backend.patches == [("T1", {"Status": "Paused"})]
        assert control_messages(ws) == [{"type": "pause"}]

    @pytest.mark.asyncio
    async def test_relayed_pause_does_not_patch_back(self, commands, scheduler, backend, gateway):
        scheduler.seed(make_record("T1"))

        await commands.apply(ControlEvent("T1", ControlType.PAUSE), relayed=True)
        await gateway.drain()

        assert backend.patches == []

    @pytest.mark.asyncio
    async def test_resume_uses_shifted_start(
        self, commands, registry, backend, manager, fake_clock
    ):
        # 30초 경과 후 10분 일시정지 -> 백엔드가 시작 시각을 10분 뒤로 이동
        fake_clock.advance(630)
        backend.resume_results["T1"] = make_snapshot(
            "T1", start_time=T0 + timedelta(seconds=600), levels=[(1, 60), (2, 60)]
        )
        _, ws = await add_subscriber(manager, "T1")

        record = await commands.resume("T1")

        assert backend.resume_calls == ["T1"]
        assert record is registry.get("T1")
        state = commands.scheduler.current_state("T1")
        assert (state.current_level, state.time_remaining_seconds) == (1, 30)
        assert control_messages(ws) == [{"type": "resume", "data": {"level": 1}}]

    @pytest.mark.asyncio
    async def test_resume_backend_failure(self, commands):
        with pytest.raises(BackendUnavailableError):
            await commands.resume("T1")


class TestFinish:
    @pytest.mark.asyncio
    async def test_finish_is_idempotent(self, commands, scheduler, registry, manager, gateway):
        _, ws = await add_subscriber(manager, "T1")
        scheduler.seed(make_record("T1"))

        first = await commands.finish("T1")
        second = await commands.finish("T1")
        await gateway.drain()

        assert first is not None
        assert second is None
        assert not registry.has("T1")
        assert control_messages(ws) == [{"type": "finish"}, {"type": "finish"}]

    @pytest.mark.asyncio
    async def test_finish_notifies_completed(self, commands, scheduler, backend, gateway):
        scheduler.seed(make_record("T1"))

        await commands.finish("T1")
        await gateway.drain()

        assert backend.patches == [("T1", {"Status": "Completed"})]


class TestUpdateLevel:
    @pytest.mark.asyncio
    async def test_override_moves_clock_to_level_start(
        self, commands, scheduler, registry, backend, manager, gateway, fake_clock
    ):
        _, ws = await add_subscriber(manager, "T1")
        scheduler.seed(make_record("T1", levels=[(1, 60), (2, 60), (3, 60)]))
        fake_clock.advance(10)

        record = await commands.update_level("T1", 3)
        await gateway.drain()

        assert registry.get("T1") is record
        assert record.cached_current_level == 3
        assert record.reference_instant == fake_clock.now - timedelta(seconds=120)
        state = scheduler.current_state("T1")
        assert (state.current_level, state.time_remaining_seconds) == (3, 60)
        assert control_messages(ws) == [{"type": "update-level", "data": {"level": 3}}]
        assert backend.patches == [("T1", {"CurrentLevel": 3})]

    @pytest.mark.asyncio
    async def test_override_backwards_is_allowed(self, commands, scheduler, fake_clock):
        scheduler.seed(make_record("T1", levels=[(1, 60), (2, 60)], cached_level=2))
        fake_clock.advance(90)

        record = await commands.update_level("T1", 1)

        assert record.cached_current_level == 1
        assert scheduler.current_state("T1").current_level == 1

    @pytest.mark.asyncio
    async def test_unknown_level(self, commands, scheduler):
        scheduler.seed(make_record("T1"))

        with pytest.raises(InvalidCommandError):
            await commands.update_level("T1", 9)

    @pytest.mark.asyncio
    async def test_no_clock(self, commands):
        with pytest.raises(InvalidCommandError):
            await commands.update_level("T1", 2)

    @pytest.mark.asyncio
    async def test_update_level_recovers_first(self, commands, registry, backend):
        backend.tournaments["T1"] = make_snapshot("T1", levels=[(1, 60), (2, 60)])

        record = await commands.update_level("T1", 2)

        assert backend.get_calls == ["T1"]
        assert registry.get("T1") is record


class TestApply:
    @pytest.mark.asyncio
    async def test_relayed_start_with_facts(self, commands, registry, backend):
        event = ControlEvent(
            "T1",
            ControlType.START,
            {
                "startTime": T0.isoformat(),
                "currentLevel": 1,
                "levels": [{"levelNumber": 1, "durationSeconds": 60}],
            },
        )

        record = await commands.apply(event, relayed=True)

        assert backend.start_calls == []
        assert backend.get_calls == []
        assert registry.get("T1") is record

    @pytest.mark.asyncio
    async def test_relayed_start_without_facts_resyncs(
        self, commands, registry, backend, manager
    ):
        backend.tournaments["T1"] = make_snapshot("T1")
        _, ws = await add_subscriber(manager, "T1")

        record = await commands.apply(ControlEvent("T1", ControlType.START), relayed=True)

        assert backend.get_calls == ["T1"]
        assert backend.start_calls == []
        assert registry.get("T1") is record
        assert control_messages(ws) == [{"type": "start", "data": {"level": 1}}]

    @pytest.mark.asyncio
    async def test_relayed_resume_not_running_on_backend(self, commands, registry, backend):
        backend.tournaments["T1"] = make_snapshot("T1", status="Paused")

        assert await commands.apply(ControlEvent("T1", ControlType.RESUME), relayed=True) is None
        assert not registry.has("T1")

    @pytest.mark.asyncio
    async def test_relayed_malformed_levels(self, commands):
        event = ControlEvent(
            "T1",
            ControlType.START,
            {"startTime": T0.isoformat(), "levels": [{"levelNumber": 1, "durationSeconds": -5}]},
        )

        with pytest.raises(InvalidCommandError):
            await commands.apply(event, relayed=True)

    @pytest.mark.asyncio
    async def test_admin_start_goes_through_backend(self, commands, backend):
        backend.start_results["T1"] = make_snapshot("T1")

        await commands.apply(ControlEvent("T1", ControlType.START))

        assert backend.start_calls == ["T1"]

    @pytest.mark.asyncio
    async def test_update_level_dispatch(self, commands, scheduler):
        scheduler.seed(make_record("T1", levels=[(1, 60), (2, 60)]))

        record = await commands.apply(
            ControlEvent("T1", ControlType.UPDATE_LEVEL, {"level": "2"})
        )

        assert record.cached_current_level == 2

    @pytest.mark.asyncio
    async def test_update_level_without_level(self, commands, scheduler):
        scheduler.seed(make_record("T1"))

        with pytest.raises(InvalidCommandError):
            await commands.apply(ControlEvent("T1", ControlType.UPDATE_LEVEL, {}))


class TestCommandDuringBackendCall:
    """백엔드 응답 대기 중 들어온 pause 가 이김."""

    @pytest.mark.asyncio
    async def test_pause_during_recovery_fetch(self, commands, resolver, registry, backend):
        backend.tournaments["T1"] = make_snapshot("T1")
        backend.gate = asyncio.Event()

        pending = asyncio.create_task(resolver.ensure("T1"))
        await asyncio.sleep(0)
        assert backend.get_calls == ["T1"]

        await commands.pause("T1")
        backend.gate.set()

        assert await pending is None
        assert not registry.has("T1")

    @pytest.mark.asyncio
    async def test_pause_during_backend_start(self, commands, registry, backend, manager):
        backend.start_results["T1"] = make_snapshot("T1")
        backend.gate = asyncio.Event()
        _, ws = await add_subscriber(manager, "T1")

        pending = asyncio.create_task(commands.start("T1"))
        await asyncio.sleep(0)
        assert backend.start_calls == ["T1"]

        await commands.pause("T1")
        backend.gate.set()

        assert await pending is None
        assert not registry.has("T1")
        assert control_messages(ws) == [{"type": "pause"}]

    @pytest.mark.asyncio
    async def test_finish_during_backend_resume(self, commands, registry, backend):
        backend.resume_results["T1"] = make_snapshot("T1")
        backend.gate = asyncio.Event()

        pending = asyncio.create_task(commands.resume("T1"))
        await asyncio.sleep(0)

        await commands.finish("T1")
        backend.gate.set()

        assert await pending is None
        assert not registry.has("T1")

    @pytest.mark.asyncio
    async def test_newer_start_keeps_its_record(self, commands, registry, backend):
        backend.start_results["T1"] = make_snapshot("T1")
        backend.gate = asyncio.Event()

        pending = asyncio.create_task(commands.start("T1"))
        await asyncio.sleep(0)

        facts = TimingFacts.model_validate(
            {"startTime": T0.isoformat(), "levels": [{"levelNumber": 1, "durationSeconds": 90}]}
        )
        newer = await commands.start("T1", facts)
        backend.gate.set()

        assert await pending is newer
        assert registry.get("T1") is newer
