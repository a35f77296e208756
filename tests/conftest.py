"""
Shared pytest fixtures for ratiosplit tests.
"""

import json
import logging
import socket

import pytest
from pubsub import pub

from ratiosplit.connection import CommandResult, IPCTransport
from ratiosplit.errors import CommandError, ConnectError, ConnectionLostError
from ratiosplit.protocol import (
    EventType,
    Frame,
    FrameDecoder,
    MessageType,
    encode_frame,
    read_frame,
)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without a window manager")


@pytest.fixture(autouse=True)
def clean_bus():
    """Drop all bus listeners after each test."""
    yield
    pub.unsubAll()


@pytest.fixture
def restore_root_logger():
    """Undo handler and level changes made to the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def make_node(
    node_id,
    orientation="none",
    children=(),
    width=1200,
    height=800,
    layout=None,
    node_type="con",
    focused=False,
    floating=(),
):
    """Build a container in GET_TREE reply format."""
    if layout is None:
        layout = {"horizontal": "splith", "vertical": "splitv"}.get(orientation, "splith")
    return {
        "id": node_id,
        "type": node_type,
        "name": f"node-{node_id}",
        "orientation": orientation,
        "layout": layout,
        "focused": focused,
        "rect": {"x": 0, "y": 0, "width": width, "height": height},
        "nodes": list(children),
        "floating_nodes": list(floating),
    }


def make_tree(workspace):
    """Wrap a workspace node in root and output nodes."""
    output = make_node(100, node_type="output", children=[workspace], width=1920, height=1080)
    return make_node(1, node_type="root", children=[output], width=1920, height=1080)


def window_event(container_id, change="new", name="xterm"):
    payload = {"change": change, "container": {"id": container_id, "name": name}}
    return Frame(EventType.WINDOW, json.dumps(payload).encode("utf-8"))


def shutdown_event(change="exit"):
    return Frame(EventType.SHUTDOWN, json.dumps({"change": change}).encode("utf-8"))


@pytest.fixture
def node():
    return make_node


@pytest.fixture
def tree():
    return make_tree


@pytest.fixture
def window_frame():
    return window_event


@pytest.fixture
def shutdown_frame():
    return shutdown_event


class FakeWM:
    """Window manager end of the socket pairs handed to an IPCTransport."""

    def __init__(self):
        self.command_server = None
        self.event_server = None
        # Answer SUBSCRIBE on every new event connection ahead of time
        self.accept_subscriptions = False
        self._decoders = {}

    def reply(self, message_type, data):
        self.command_server.sendall(encode_frame(message_type, json.dumps(data)))

    def push_event(self, event_type, data, sock=None):
        sock = sock or self.event_server
        sock.sendall(encode_frame(event_type, json.dumps(data)))

    def read_request(self, sock):
        decoder = self._decoders.setdefault(id(sock), FrameDecoder())
        return read_frame(sock, decoder)


@pytest.fixture
def ipc():
    """A transport connected to a FakeWM through socket pairs.

    Every call to the connector hands out a fresh pair; the server ends of
    the latest command and event connections are on the FakeWM.
    """
    wm = FakeWM()
    opened = []

    def connector(address, timeout):
        # IPCTransport opens the command connection first, then the event one
        client, server = socket.socketpair()
        client.settimeout(timeout)
        server.settimeout(2.0)
        if len(opened) % 4 == 0:
            wm.command_server = server
        else:
            wm.event_server = server
            if wm.accept_subscriptions:
                wm.push_event(MessageType.SUBSCRIBE, {"success": True})
        opened.extend([client, server])
        return client

    transport = IPCTransport.connect("/run/user/1000/i3/ipc-socket.test", connector=connector)
    transport.fake_wm = wm
    yield transport
    transport.close()
    for sock in opened:
        sock.close()


class FakeTransport:
    """Scripted stand-in for IPCTransport used by dispatcher tests.

    events: Frames to return from next_event, or exceptions to raise
    trees: GET_TREE replies, the last one is reused
    failing: commands that the window manager rejects
    """

    def __init__(self, events=(), trees=(), failing=(), reconnect_failures=0):
        self.events = list(events)
        self.trees = list(trees)
        self.failing = set(failing)
        self.reconnect_failures = reconnect_failures
        self.commands = []
        self.subscriptions = []
        self.subscribe_calls = 0
        self.reconnects = 0
        self.connected = True
        self.closed = False
        self.on_reconnect = None

    def subscribe(self, event_names):
        self.subscribe_calls += 1
        self.subscriptions = list(event_names)

    def next_event(self):
        if not self.connected:
            raise ConnectionLostError("disconnected")
        if not self.events:
            raise AssertionError("next_event called with no scripted events left")
        item = self.events.pop(0)
        if isinstance(item, BaseException):
            if isinstance(item, ConnectionLostError):
                self.connected = False
            raise item
        return item

    def reconnect(self):
        if self.on_reconnect:
            self.on_reconnect()
        self.reconnects += 1
        if self.reconnect_failures > 0:
            self.reconnect_failures -= 1
            raise ConnectError("endpoint unreachable")
        self.connected = True
        self.subscriptions = []

    def get_tree(self):
        if not self.trees:
            raise AssertionError("get_tree called with no scripted trees")
        return self.trees.pop(0) if len(self.trees) > 1 else self.trees[0]

    def run_command(self, command):
        self.commands.append(command)
        if command in self.failing:
            raise CommandError(command, "No matching node")
        return [CommandResult(True)]

    def close(self):
        self.closed = True
        self.connected = False


@pytest.fixture
def fake_transport():
    return FakeTransport
