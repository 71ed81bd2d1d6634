"""Shared fakes: a scripted brick, an in-memory transport and a fake serial port."""

import struct
from queue import Queue, Empty

import pytest

from nxt_protocol.codec import decode_command, encode_reply
from nxt_protocol.frame import FrameBuilder
from nxt_protocol.responses import Response
from nxt_protocol.session import Session


class FakeBrick:
    """Answers commands from per-opcode reply scripts.

    Each script is a list consumed front to back; its last entry repeats.
    An entry may be a Response (encoded and framed), raw bytes (sent on the
    wire as-is) or None (no answer).
    """

    def __init__(self):
        self.scripts = {}
        self.commands = []

    def reply(self, opcode, *entries):
        self.scripts.setdefault(opcode, []).extend(entries)

    def answer(self, command):
        self.commands.append(command)
        if not command.wants_response:
            return None
        script = self.scripts.get(command.opcode)
        if not script:
            return None
        entry = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(entry, Response):
            return FrameBuilder.build(encode_reply(entry))
        return entry

    def opcodes(self):
        return [c.opcode for c in self.commands]


def parse_wire(data):
    length = struct.unpack_from("<H", data, 0)[0]
    return decode_command(data[2:2 + length])


class FakeTransport:
    """In-memory stand-in for SerialTransport driven by a FakeBrick."""

    def __init__(self, brick, port="FAKE"):
        self.brick = brick
        self.port = port
        self.is_open = True
        self.out_waiting = 0
        self.sent = []
        self.flushes = 0
        self.queue = Queue()

    def open(self):
        self.is_open = True

    def close(self):
        self.is_open = False

    def inject(self, data):
        self.queue.put(bytes(data))

    def send(self, data):
        self.sent.append(bytes(data))
        wire = self.brick.answer(parse_wire(data))
        if wire:
            # split to exercise partial frame assembly
            self.queue.put(wire[:1])
            self.queue.put(wire[1:])
        return len(data)

    def receive(self, timeout=None):
        try:
            return self.queue.get(timeout=timeout or 0.01)
        except Empty:
            return b""

    def flush(self):
        self.flushes += 1
        discarded = 0
        while True:
            try:
                discarded += len(self.queue.get_nowait())
            except Empty:
                return discarded


class FakeSerial:
    """Replacement for serial.Serial answering through a FakeBrick."""

    brick = None
    instances = []

    def __init__(self, port=None, baudrate=9600, timeout=None, **kwargs):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout or 0.01
        self.is_open = True
        self.out_waiting = 0
        self.written = bytearray()
        self._rx = Queue()
        FakeSerial.instances.append(self)

    def write(self, data):
        self.written.extend(data)
        if FakeSerial.brick is not None:
            wire = FakeSerial.brick.answer(parse_wire(bytes(data)))
            if wire:
                self._rx.put(wire)
        return len(data)

    def read(self, size=1):
        try:
            return self._rx.get(timeout=self.timeout)
        except Empty:
            return b""

    def feed(self, data):
        self._rx.put(bytes(data))

    def reset_input_buffer(self):
        while True:
            try:
                self._rx.get_nowait()
            except Empty:
                return

    def close(self):
        self.is_open = False


@pytest.fixture
def brick():
    return FakeBrick()


@pytest.fixture
def transport(brick):
    return FakeTransport(brick)


@pytest.fixture
def session(transport):
    return Session(transport, response_timeout=0.2, poll_timeout=0.01)


@pytest.fixture
def fake_serial(monkeypatch, brick):
    import serial

    FakeSerial.brick = brick
    FakeSerial.instances = []
    monkeypatch.setattr(serial, "Serial", FakeSerial)
    yield FakeSerial
    FakeSerial.brick = None
