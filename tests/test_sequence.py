"""Tests for the command sequencer."""

import threading

import pytest

from nxt_protocol import commands as cmd
from nxt_protocol import responses as rsp
from nxt_protocol.constants import ErrorCode, Opcode
from nxt_protocol.exceptions import ProtocolViolationError
from nxt_protocol.sequence import CommandSequence, CommandSequencer


@pytest.fixture
def sequencer(session):
    session.response_timeout = 0.05
    return CommandSequencer(session, retry_delay=0)


def _three_steps(**kwargs):
    return CommandSequence(
        commands=[cmd.GetBatteryLevel(), cmd.GetCurrentProgramName(), cmd.KeepAlive(wants_response=True)],
        **kwargs,
    )


def test_run_once_all_succeed(sequencer, brick):
    """Every command runs in order and every reply is collected."""
    brick.reply(Opcode.GET_BATTERY_LEVEL, rsp.GetBatteryLevelResponse(millivolts=7000))
    brick.reply(Opcode.GET_CURRENT_PROGRAM_NAME,
                rsp.GetCurrentProgramNameResponse(filename="run.rxe"))
    brick.reply(Opcode.KEEP_ALIVE, rsp.KeepAliveResponse(sleep_time_limit=1))

    responses = sequencer.run_once(_three_steps())

    assert [r.opcode for r in responses] == [
        Opcode.GET_BATTERY_LEVEL, Opcode.GET_CURRENT_PROGRAM_NAME, Opcode.KEEP_ALIVE,
    ]
    assert all(r.success for r in responses)


def test_failure_aborts_cycle(sequencer, brick):
    """Without continue_on_error a failing step ends the cycle."""
    brick.reply(Opcode.GET_BATTERY_LEVEL, rsp.GetBatteryLevelResponse(millivolts=7000))
    brick.reply(Opcode.GET_CURRENT_PROGRAM_NAME,
                rsp.GetCurrentProgramNameResponse(status=ErrorCode.NO_ACTIVE_PROGRAM))
    brick.reply(Opcode.KEEP_ALIVE, rsp.KeepAliveResponse(sleep_time_limit=1))

    responses = sequencer.run_once(_three_steps())

    assert len(responses) == 3
    assert responses[1].status == ErrorCode.NO_ACTIVE_PROGRAM
    assert responses[2] is None
    assert Opcode.KEEP_ALIVE not in brick.opcodes()


def test_failure_skipped_with_continue_on_error(sequencer, brick):
    """With continue_on_error the remaining steps still run."""
    brick.reply(Opcode.GET_BATTERY_LEVEL, rsp.GetBatteryLevelResponse(millivolts=7000))
    brick.reply(Opcode.GET_CURRENT_PROGRAM_NAME,
                rsp.GetCurrentProgramNameResponse(status=ErrorCode.NO_ACTIVE_PROGRAM))
    brick.reply(Opcode.KEEP_ALIVE, rsp.KeepAliveResponse(sleep_time_limit=1))

    responses = sequencer.run_once(_three_steps(continue_on_error=True))

    assert len(responses) == 3
    assert responses[2].sleep_time_limit == 1


def test_timeout_counts_as_failure(sequencer, brick):
    """A timed-out step leaves its slot empty and aborts the cycle."""
    brick.reply(Opcode.GET_CURRENT_PROGRAM_NAME,
                rsp.GetCurrentProgramNameResponse(filename="run.rxe"))

    responses = sequencer.run_once(_three_steps())

    assert responses == [None, None, None]
    assert brick.opcodes() == [Opcode.GET_BATTERY_LEVEL]


def test_timeout_skipped_with_continue_on_error(sequencer, brick):
    """A timed-out step is skipped when continuing on error."""
    brick.reply(Opcode.GET_CURRENT_PROGRAM_NAME,
                rsp.GetCurrentProgramNameResponse(filename="run.rxe"))
    brick.reply(Opcode.KEEP_ALIVE, rsp.KeepAliveResponse(sleep_time_limit=1))

    responses = sequencer.run_once(_three_steps(continue_on_error=True))

    assert len(responses) == 3
    assert responses[0] is None
    assert responses[1].opcode == Opcode.GET_CURRENT_PROGRAM_NAME
    assert responses[2].opcode == Opcode.KEEP_ALIVE


def test_fire_and_forget_steps(sequencer, brick):
    """Steps without a reply produce synthetic successes."""
    sequence = CommandSequence(commands=[cmd.PlayTone(), cmd.StopSoundPlayback()])
    responses = sequencer.run_once(sequence)
    assert all(r.synthetic and r.success for r in responses)
    assert brick.opcodes() == [Opcode.PLAY_TONE, Opcode.STOP_SOUND_PLAYBACK]


def test_protocol_violation_propagates(sequencer, brick):
    """Errors other than timeouts stop the sequencer."""
    brick.reply(Opcode.GET_BATTERY_LEVEL, b"\x03\x00\x02\x0d\x00")
    with pytest.raises(ProtocolViolationError):
        sequencer.run_once(_three_steps(continue_on_error=True))


def test_run_without_polling_is_single_cycle(sequencer, brick):
    """A negative poll interval runs the sequence once."""
    brick.reply(Opcode.GET_BATTERY_LEVEL, rsp.GetBatteryLevelResponse(millivolts=7000))
    sequence = CommandSequence(commands=[cmd.GetBatteryLevel()])

    results = sequencer.run(sequence, cycles=5)

    assert len(results) == 1
    assert sequencer.average_polling_frequency is None


def test_run_polling_cycles(sequencer, brick):
    """Polling repeats the sequence and tracks the average cycle period."""
    brick.reply(Opcode.GET_BATTERY_LEVEL, rsp.GetBatteryLevelResponse(millivolts=7000))
    sequence = CommandSequence(commands=[cmd.GetBatteryLevel()], poll_interval_ms=10)

    results = sequencer.run(sequence, cycles=3)

    assert len(results) == 3
    assert brick.opcodes().count(Opcode.GET_BATTERY_LEVEL) == 3
    assert sequencer.average_polling_frequency is not None
    assert sequencer.average_polling_frequency >= 5


def test_failed_cycle_does_not_stop_polling(sequencer, brick):
    """An aborted cycle is followed by the next one."""
    brick.reply(Opcode.GET_CURRENT_PROGRAM_NAME,
                rsp.GetCurrentProgramNameResponse(status=ErrorCode.NO_ACTIVE_PROGRAM))
    sequence = CommandSequence(commands=[cmd.GetCurrentProgramName()], poll_interval_ms=0)

    results = sequencer.run(sequence, cycles=2)

    assert len(results) == 2
    assert all(not cycle[0].success for cycle in results)


def test_stop_event_ends_polling(sequencer, brick):
    """Setting the stop event ends an unbounded run."""
    brick.reply(Opcode.GET_BATTERY_LEVEL, rsp.GetBatteryLevelResponse(millivolts=7000))
    sequence = CommandSequence(commands=[cmd.GetBatteryLevel()], poll_interval_ms=20)
    stop = threading.Event()
    timer = threading.Timer(0.1, stop.set)
    timer.start()
    try:
        results = sequencer.run(sequence, stop_event=stop)
    finally:
        timer.cancel()

    assert 1 <= len(results) < 50


def test_stop_event_already_set(sequencer, brick):
    """A run with a set stop event executes nothing."""
    stop = threading.Event()
    stop.set()
    sequence = CommandSequence(commands=[cmd.GetBatteryLevel()], poll_interval_ms=10)
    assert sequencer.run(sequence, stop_event=stop) == []
    assert brick.commands == []


def test_polling_enabled():
    """Zero and positive intervals enable polling."""
    assert not CommandSequence().polling_enabled
    assert CommandSequence(poll_interval_ms=0).polling_enabled


def test_slots_follow_commands_with_repeated_opcodes(sequencer, brick):
    """Each command keeps its own slot when the same opcode appears twice."""
    brick.reply(Opcode.GET_BATTERY_LEVEL, None, rsp.GetBatteryLevelResponse(millivolts=6500))
    brick.reply(Opcode.KEEP_ALIVE, rsp.KeepAliveResponse(sleep_time_limit=1))
    sequence = CommandSequence(
        commands=[cmd.GetBatteryLevel(), cmd.KeepAlive(wants_response=True), cmd.GetBatteryLevel()],
        continue_on_error=True,
    )

    responses = sequencer.run_once(sequence)

    assert len(responses) == len(sequence.commands)
    assert responses[0] is None
    assert responses[1].opcode == Opcode.KEEP_ALIVE
    assert responses[2].millivolts == 6500
