"""
Unit tests for i3 IPC frame encoding/decoding.
"""

import socket
import struct

import pytest
from ratiosplit.errors import ConnectionLostError, MalformedFrameError, ProtocolError
from ratiosplit.protocol import (
    HEADER_SIZE,
    MAGIC,
    EventType,
    Frame,
    FrameDecoder,
    MessageType,
    encode_frame,
    read_frame,
)


@pytest.mark.unit
class TestEncodeFrame:
    """Test frame encoding."""

    def test_header_layout(self):
        """Test magic, little-endian length and type."""
        data = encode_frame(MessageType.RUN_COMMAND, b"split vertical")

        assert data[:6] == b"i3-ipc"
        length, message_type = struct.unpack("<II", data[6:14])
        assert length == len(b"split vertical")
        assert message_type == 0
        assert data[14:] == b"split vertical"

    def test_string_payload_is_utf8(self):
        """Test string payloads are UTF-8 encoded."""
        data = encode_frame(MessageType.RUN_COMMAND, "[title=\"ü\"] focus")

        length = struct.unpack("<I", data[6:10])[0]
        assert length == len("[title=\"ü\"] focus".encode("utf-8"))

    def test_empty_payload(self):
        """Test GET_TREE carries an empty payload."""
        data = encode_frame(MessageType.GET_TREE)

        assert len(data) == HEADER_SIZE
        assert struct.unpack("<II", data[6:]) == (0, 4)

    def test_event_type_high_bit(self):
        """Test event types keep their high bit."""
        data = encode_frame(EventType.WINDOW, b"{}")

        assert struct.unpack("<I", data[10:14])[0] == 0x80000003


@pytest.mark.unit
class TestFrameDecoder:
    """Test incremental decoding."""

    def test_decode_encoded_frames(self):
        """Test frames of several types and sizes decode to what was encoded."""
        cases = [
            (MessageType.GET_TREE, b""),
            (MessageType.RUN_COMMAND, b"resize set width 33 ppt"),
            (EventType.SHUTDOWN, b'{"change": "exit"}'),
            (MessageType.SUBSCRIBE, bytes(range(256)) * 40),
        ]
        decoder = FrameDecoder()
        for message_type, payload in cases:
            decoder.feed(encode_frame(message_type, payload))

        for message_type, payload in cases:
            frame = decoder.next_frame()
            assert frame == Frame(message_type, payload)

        assert decoder.next_frame() is None

    def test_partial_reads_are_not_errors(self):
        """Test a frame fed one byte at a time."""
        data = encode_frame(MessageType.RUN_COMMAND, b"split horizontal")
        decoder = FrameDecoder()

        for byte in data[:-1]:
            decoder.feed(bytes([byte]))
            assert decoder.next_frame() is None

        decoder.feed(data[-1:])
        frame = decoder.next_frame()
        assert frame.payload == b"split horizontal"
        assert len(decoder.buffer) == 0

    def test_trailing_bytes_kept(self):
        """Test bytes of the next frame stay buffered."""
        first = encode_frame(EventType.WINDOW, b"{}")
        second = encode_frame(EventType.WINDOW, b'{"change": "new"}')
        decoder = FrameDecoder()
        decoder.feed(first + second[:5])

        assert decoder.next_frame().payload == b"{}"
        assert decoder.next_frame() is None
        assert bytes(decoder.buffer) == second[:5]

    def test_bad_magic(self):
        """Test wrong preamble raises Malformed."""
        decoder = FrameDecoder()
        decoder.feed(b"i4-ipc" + struct.pack("<II", 0, 0))

        with pytest.raises(MalformedFrameError):
            decoder.next_frame()

    def test_bad_magic_detected_early(self):
        """Test a mismatch is reported before the header is complete."""
        decoder = FrameDecoder()
        decoder.feed(b"HTTP")

        with pytest.raises(MalformedFrameError):
            decoder.next_frame()

    def test_oversized_length(self):
        """Test a declared length above the maximum raises Malformed."""
        decoder = FrameDecoder(max_payload_size=1024)
        header = MAGIC + struct.pack("<II", 1025, MessageType.GET_TREE)
        decoder.feed(header + b"x" * 10)

        with pytest.raises(MalformedFrameError) as exc_info:
            decoder.next_frame()

        assert isinstance(exc_info.value, ProtocolError)
        # Nothing was consumed past what had been read
        assert bytes(decoder.buffer) == header + b"x" * 10

    def test_decoder_usable_after_error(self):
        """Test the decoder itself does not break on a bad frame."""
        decoder = FrameDecoder(max_payload_size=16)
        decoder.feed(MAGIC + struct.pack("<II", 17, 0))
        with pytest.raises(MalformedFrameError):
            decoder.next_frame()

        decoder.clear()
        decoder.feed(encode_frame(MessageType.GET_VERSION, b"{}"))
        assert decoder.next_frame().message_type == MessageType.GET_VERSION


@pytest.mark.unit
class TestFrame:
    """Test Frame helpers."""

    def test_is_event(self):
        assert Frame(EventType.WINDOW).is_event
        assert not Frame(MessageType.RUN_COMMAND).is_event

    def test_length(self):
        assert Frame(MessageType.GET_TREE, b"abc").length == 3

    def test_json(self):
        frame = Frame(MessageType.SUBSCRIBE, b'{"success": true}')
        assert frame.json() == {"success": True}

    def test_json_invalid(self):
        """Test garbage payloads raise ProtocolError."""
        with pytest.raises(ProtocolError):
            Frame(MessageType.GET_TREE, b"{not json").json()

        with pytest.raises(ProtocolError):
            Frame(MessageType.GET_TREE, b"\xff\xfe").json()


@pytest.mark.unit
class TestReadFrame:
    """Test blocking reads from a socket."""

    def test_read_split_across_sends(self):
        """Test a frame sent in two pieces is read as one."""
        client, server = socket.socketpair()
        try:
            data = encode_frame(EventType.WINDOW, b'{"change": "new"}')
            server.sendall(data[:9])
            server.sendall(data[9:])

            frame = read_frame(client, FrameDecoder(), chunk_size=4)
            assert frame.message_type == EventType.WINDOW
            assert frame.json() == {"change": "new"}
        finally:
            client.close()
            server.close()

    def test_closed_stream(self):
        """Test closing mid-frame raises ConnectionLostError."""
        client, server = socket.socketpair()
        try:
            server.sendall(encode_frame(MessageType.GET_TREE, b"{}")[:8])
            server.close()

            with pytest.raises(ConnectionLostError):
                read_frame(client, FrameDecoder())
        finally:
            client.close()
