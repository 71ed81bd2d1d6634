"""Tests for the payload codec and command catalog."""

from dataclasses import fields as dc_fields

import pytest

from nxt_protocol import commands as cmd
from nxt_protocol import responses as rsp
from nxt_protocol.catalog import CATALOG, ResponsePolicy
from nxt_protocol.codec import encode, decode, encode_reply, decode_command
from nxt_protocol.constants import (
    CommandKind, ErrorCode, Opcode, InputPort, OutputPort, SensorType, SensorMode,
    OutputMode, RegulationMode, RunState,
)
from nxt_protocol.exceptions import EncodeError, MalformedResponseError


def test_catalog_covers_every_opcode():
    """Every opcode has a catalog entry, a command class and a response class."""
    for opcode in Opcode:
        assert opcode in CATALOG
        assert opcode in cmd.COMMAND_TYPES
        assert rsp.response_type(opcode) is not None


def test_catalog_field_names_match_classes():
    """Catalog field names exist on the registered dataclasses."""
    for opcode, entry in CATALOG.items():
        command_names = {f.name for f in dc_fields(cmd.COMMAND_TYPES[opcode])}
        for f in entry.request_fields:
            assert set(f.names) <= command_names, (opcode, f)
        response_names = {f.name for f in dc_fields(rsp.response_type(opcode))}
        for f in entry.response_fields:
            assert set(f.names) <= response_names, (opcode, f)


def test_system_commands_require_response():
    """All system opcodes require a reply."""
    for entry in CATALOG.values():
        if entry.kind == CommandKind.SYSTEM:
            assert entry.policy is ResponsePolicy.REQUIRED


def test_battery_level_scenario():
    """02 0B 00 E8 13 decodes to 5096 mV."""
    command = cmd.GetBatteryLevel()
    assert encode(command) == b"\x00\x0b"

    response = decode(Opcode.GET_BATTERY_LEVEL, bytes.fromhex("020B00E813"))
    assert isinstance(response, rsp.GetBatteryLevelResponse)
    assert response.success
    assert response.millivolts == 5096
    assert response.voltage == pytest.approx(5.096)


def test_no_reply_flag():
    """Commands that do not want a reply set bit 7 of the type byte."""
    assert encode(cmd.PlayTone(frequency=440, duration=500)) == b"\x80\x03\xb8\x01\xf4\x01"
    assert encode(cmd.PlayTone(frequency=440, duration=500, wants_response=True))[0] == 0x00


def test_system_command_type_byte():
    """System commands use type 0x01."""
    assert encode(cmd.GetFirmwareVersion()) == b"\x01\x88"


def test_ls_write_layout():
    """LS_WRITE payload is 5 header bytes plus the bus data."""
    command = cmd.LSWrite(port=InputPort.SENSOR_4, tx_data=b"\x02\x42", rx_length=1)
    payload = encode(command)
    assert payload == b"\x80\x0f\x03\x02\x01\x02\x42"
    assert len(payload) == len(command.tx_data) + 5


def test_ls_write_too_long():
    """More than 16 bus bytes cannot be encoded."""
    with pytest.raises(EncodeError):
        encode(cmd.LSWrite(tx_data=bytes(17), rx_length=0))


def test_ls_write_rx_length_range():
    """The expected answer length is limited to 16 bytes."""
    with pytest.raises(EncodeError):
        encode(cmd.LSWrite(tx_data=b"\x02", rx_length=17))


def test_set_output_state_layout():
    """SET_OUTPUT_STATE packs signed power and a 32-bit tacho limit."""
    command = cmd.SetOutputState(
        port=OutputPort.B, power=-75, mode=OutputMode.MOTOR_ON | OutputMode.REGULATED,
        regulation=RegulationMode.MOTOR_SPEED, turn_ratio=0,
        run_state=RunState.RUNNING, tacho_limit=360, wants_response=True,
    )
    assert encode(command) == bytes([
        0x00, 0x04, 0x01, 0xB5, 0x05, 0x01, 0x00, 0x20, 0x68, 0x01, 0x00, 0x00,
    ])


def test_power_out_of_range():
    """Motor power is limited to -100..100."""
    with pytest.raises(EncodeError) as exc:
        encode(cmd.SetOutputState(power=101))
    assert exc.value.opcode == Opcode.SET_OUTPUT_STATE


def test_filename_truncated():
    """Over-long file names are cut to 19 characters plus NUL."""
    payload = encode(cmd.OpenRead(filename="a" * 25))
    assert len(payload) == 22
    assert payload[2:22] == b"a" * 19 + b"\0"


def test_filename_exact_width():
    """A 20-character file name is stored without terminator and survives decoding."""
    name = "abcdefghij0123456789"
    command = decode_command(encode(cmd.Delete(filename=name)))
    assert command.filename == name


def test_message_write_appends_terminator():
    """MESSAGE_WRITE counts the NUL terminator in the size byte."""
    payload = encode(cmd.MessageWrite(inbox=1, message=b"go"))
    assert payload == b"\x80\x09\x01\x03go\x00"


def test_message_write_limits():
    """Mailbox number and message length are range checked."""
    with pytest.raises(EncodeError):
        encode(cmd.MessageWrite(inbox=10, message=b"x"))
    with pytest.raises(EncodeError):
        encode(cmd.MessageWrite(inbox=0, message=bytes(59)))


def test_encode_is_idempotent():
    """Encoding the same command twice gives identical bytes."""
    command = cmd.SetInputMode(port=InputPort.SENSOR_2, sensor_type=SensorType.SWITCH,
                               sensor_mode=SensorMode.BOOLEAN)
    assert encode(command) == encode(command)


ROUND_TRIP_COMMANDS = [
    cmd.StartProgram(filename="demo.rxe"),
    cmd.StopProgram(),
    cmd.PlaySoundFile(filename="! Click.rso", loop=True),
    cmd.PlayTone(frequency=1000, duration=250),
    cmd.SetOutputState(port=OutputPort.ALL, power=50, mode=OutputMode.MOTOR_ON,
                       regulation=RegulationMode.MOTOR_SYNC, turn_ratio=-20,
                       run_state=RunState.RAMP_UP, tacho_limit=720),
    cmd.SetInputMode(port=InputPort.SENSOR_3, sensor_type=SensorType.LOW_SPEED_9V,
                     sensor_mode=SensorMode.RAW),
    cmd.GetOutputState(port=OutputPort.C),
    cmd.GetInputValues(port=InputPort.SENSOR_1),
    cmd.ResetInputScaledValue(port=InputPort.SENSOR_2),
    cmd.MessageWrite(inbox=3, message=b"hello"),
    cmd.ResetMotorPosition(port=OutputPort.A, relative=True),
    cmd.GetBatteryLevel(),
    cmd.StopSoundPlayback(),
    cmd.KeepAlive(wants_response=True),
    cmd.LSGetStatus(port=InputPort.SENSOR_4),
    cmd.LSWrite(port=InputPort.SENSOR_4, tx_data=b"\x02\x08", rx_length=16),
    cmd.LSRead(port=InputPort.SENSOR_4),
    cmd.GetCurrentProgramName(),
    cmd.MessageRead(remote_inbox=12, local_inbox=2, remove=False),
    cmd.OpenRead(filename="data.log"),
    cmd.OpenWrite(filename="data.log", file_size=1024),
    cmd.Read(handle=3, bytes_to_read=58),
    cmd.Write(handle=3, data=b"\x01\x02\x03"),
    cmd.Close(handle=3),
    cmd.Delete(filename="old.rxe"),
    cmd.FindFirst(filename="*.rso"),
    cmd.FindNext(handle=1),
    cmd.GetFirmwareVersion(),
    cmd.OpenWriteLinear(filename="prog.rxe", file_size=4096),
    cmd.OpenReadLinear(filename="prog.rxe"),
    cmd.OpenWriteData(filename="log.dat", file_size=200),
    cmd.OpenAppendData(filename="log.dat"),
    cmd.RequestFirstModule(module_name="*.mod"),
    cmd.RequestNextModule(handle=0),
    cmd.CloseModuleHandle(handle=0),
    cmd.ReadIOMap(module_id=0x00010001, offset=4, bytes_to_read=10),
    cmd.WriteIOMap(module_id=0x00010001, offset=4, data=b"\xaa\xbb"),
    cmd.BootCommand(),
    cmd.SetBrickName(name="Robo"),
    cmd.GetDeviceInfo(),
    cmd.DeleteUserFlash(),
    cmd.PollCommandLength(buffer_number=1),
    cmd.PollCommand(buffer_number=0, command_length=10),
    cmd.BluetoothFactoryReset(),
]


@pytest.mark.parametrize("command", ROUND_TRIP_COMMANDS, ids=lambda c: type(c).__name__)
def test_command_round_trip(command):
    """Decoding an encoded command gives back an equal command."""
    payload = encode(command)
    assert len(payload) >= command.entry.request_length
    assert decode_command(payload) == command


def test_round_trip_list_covers_catalog():
    """Every opcode appears in the round-trip list."""
    assert {c.opcode for c in ROUND_TRIP_COMMANDS} == set(Opcode)


ROUND_TRIP_RESPONSES = [
    rsp.GetOutputStateResponse(port=OutputPort.B, power=-30, mode=OutputMode.MOTOR_ON,
                               regulation=RegulationMode.IDLE, turn_ratio=0,
                               run_state=RunState.RUNNING, tacho_limit=0,
                               tacho_count=-1234, block_tacho_count=100,
                               rotation_count=-5),
    rsp.GetInputValuesResponse(port=InputPort.SENSOR_1, valid=True, calibrated=False,
                               sensor_type=SensorType.SWITCH,
                               sensor_mode=SensorMode.BOOLEAN, raw_value=183,
                               normalized_value=1023, scaled_value=1,
                               calibrated_value=-2),
    rsp.KeepAliveResponse(sleep_time_limit=600000),
    rsp.LSGetStatusResponse(bytes_ready=1),
    rsp.LSReadResponse(bytes_read=2, rx_data=b"\x1e\x00"),
    rsp.GetCurrentProgramNameResponse(filename="demo.rxe"),
    rsp.MessageReadResponse(local_inbox=2, message_size=6, message=b"hello"),
    rsp.HandleResponse(Opcode.OPEN_WRITE, handle=4),
    rsp.OpenReadResponse(handle=2, file_size=5000),
    rsp.ReadResponse(handle=2, bytes_read=3, data=b"abc"),
    rsp.WriteResponse(handle=2, bytes_written=3),
    rsp.DeleteResponse(filename="old.rxe"),
    rsp.FindFileResponse(Opcode.FIND_NEXT, handle=1, filename="Woops.rso", file_size=4122),
    rsp.GetFirmwareVersionResponse(protocol_minor=124, protocol_major=1,
                                   firmware_minor=31, firmware_major=1),
    rsp.OpenReadLinearResponse(pointer=0x00108000),
    rsp.OpenAppendDataResponse(handle=5, available_size=120),
    rsp.ModuleResponse(Opcode.REQUEST_FIRST_MODULE, handle=0, module_name="Output.mod",
                       module_id=0x00020001, module_size=0, io_map_size=31),
    rsp.ReadIOMapResponse(module_id=0x00020001, bytes_read=2, data=b"\x10\x20"),
    rsp.WriteIOMapResponse(module_id=0x00020001, bytes_written=2),
    rsp.BootCommandResponse(message="Yes"),
    rsp.GetDeviceInfoResponse(brick_name="NXT", bluetooth_address=b"\x00\x16\x53\x01\x02\x03\x00",
                              signal_strength=0, free_flash=48000),
    rsp.PollCommandLengthResponse(buffer_number=0, command_length=12),
    rsp.PollCommandResponse(buffer_number=0, command_length=2, command=b"\x01\x02"),
    rsp.Response(Opcode.SET_BRICK_NAME),
]


@pytest.mark.parametrize("response", ROUND_TRIP_RESPONSES,
                         ids=lambda r: f"{type(r).__name__}-{int(r.opcode):02X}")
def test_response_round_trip(response):
    """Decoding an encoded reply gives back an equal response."""
    payload = encode_reply(response)
    decoded = decode(response.opcode, payload)
    assert decoded == response
    assert decoded.opcode == response.opcode


def test_fixed_reply_lengths():
    """Encoded replies match the catalog reply length where it is fixed."""
    for response in ROUND_TRIP_RESPONSES:
        expected = CATALOG[response.opcode].response_length
        if expected is not None and response.opcode not in (Opcode.POLL_COMMAND,):
            assert len(encode_reply(response)) == expected, response


def test_ls_read_window_padding():
    """LS_READ reply is always 20 bytes; bytes past bytes_read are padding."""
    payload = encode_reply(rsp.LSReadResponse(bytes_read=1, rx_data=b"\x2a"))
    assert len(payload) == 20
    padded = payload[:5] + b"\xff" * 15
    assert decode(Opcode.LS_READ, padded).rx_data == b"\x2a"


def test_decode_short_payload_uses_sentinels():
    """A truncated reply decodes with absent values instead of failing."""
    response = decode(Opcode.GET_INPUT_VALUES, b"\x02\x07\x00\x01\x01")
    assert response.port == InputPort.SENSOR_2
    assert response.valid is True
    assert response.sensor_type is None
    assert response.raw_value == -1
    assert response.scaled_value == -1


def test_decode_error_status_keeps_status():
    """Failure replies decode with their status and absent fields."""
    response = decode(Opcode.GET_CURRENT_PROGRAM_NAME, b"\x02\x11\xec")
    assert not response.success
    assert response.status == ErrorCode.NO_ACTIVE_PROGRAM
    assert response.filename == ""


def test_decode_unknown_status_kept_as_int():
    """Status bytes outside the table are preserved as integers."""
    response = decode(Opcode.STOP_PROGRAM, b"\x02\x01\x77")
    assert response.status == 0x77
    assert response.error_name == "Unknown(0x77)"


def test_decode_rejects_short_reply():
    """Replies shorter than 3 bytes are malformed."""
    with pytest.raises(MalformedResponseError):
        decode(Opcode.GET_BATTERY_LEVEL, b"\x02\x0b")


def test_decode_rejects_non_reply():
    """Payloads not marked as replies are malformed."""
    with pytest.raises(MalformedResponseError):
        decode(Opcode.GET_BATTERY_LEVEL, b"\x00\x0b\x00\xe8\x13")


def test_decode_command_rejects_unknown_opcode():
    """Commands with opcodes outside the catalog are rejected."""
    with pytest.raises(MalformedResponseError):
        decode_command(b"\x00\x12")


def test_decode_command_restores_no_reply_flag():
    """The no-reply bit maps back to wants_response."""
    assert decode_command(b"\x80\x0c").wants_response is False
    assert decode_command(b"\x00\x0c").wants_response is True


def test_device_info_address_text():
    """The Bluetooth address renders as colon separated hex."""
    response = rsp.GetDeviceInfoResponse(bluetooth_address=b"\x00\x16\x53\x0a\x0b\x0c\x00")
    assert response.bluetooth_address_str == "00:16:53:0A:0B:0C"


def test_firmware_version_text():
    """Firmware minor version is zero padded."""
    response = rsp.GetFirmwareVersionResponse(protocol_minor=124, protocol_major=1,
                                              firmware_minor=5, firmware_major=1)
    assert response.protocol_version == "1.124"
    assert response.firmware_version == "1.05"
