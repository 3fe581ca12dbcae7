"""Outbound writer ordering and heartbeat liveness, run on a real event loop."""
import asyncio


class FakeWebSocket:
    def __init__(self, fail_after=None):
        self.sent = []
        self.closed_with = None
        self.fail_after = fail_after

    async def send_json(self, frame):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise RuntimeError("socket gone")
        self.sent.append(frame)

    async def close(self, code=1000, reason=None):
        self.closed_with = (code, reason)


def test_writer_sends_frames_in_queue_order():
    from acto.core.websocket.connection import ClientConnection

    async def run():
        ws = FakeWebSocket()
        conn = ClientConnection(ws)
        writer = asyncio.create_task(conn.run_writer())
        for n in range(5):
            conn.send("new-message", {"n": n})
        conn.stop_writer()
        await asyncio.wait_for(writer, timeout=1)
        return ws.sent

    sent = asyncio.run(run())
    assert sent == [{"type": "new-message", "n": n} for n in range(5)]


def test_writer_stops_when_socket_fails():
    from acto.core.websocket.connection import ClientConnection

    async def run():
        ws = FakeWebSocket(fail_after=1)
        conn = ClientConnection(ws)
        conn.send("a", {})
        conn.send("b", {})
        await asyncio.wait_for(conn.run_writer(), timeout=1)
        return ws.sent

    assert asyncio.run(run()) == [{"type": "a"}]


def test_closed_connection_drops_frames():
    from acto.core.websocket.connection import CLOSED, ClientConnection

    conn = ClientConnection(FakeWebSocket())
    conn.state = CLOSED
    assert conn.send("users-online", {"userIds": []}) is False


def test_heartbeat_sends_while_active(monkeypatch):
    from acto.core.config import settings
    from acto.core.websocket.connection import ClientConnection
    from acto.core.websocket.heartbeat import mark_activity, run_heartbeat_task

    monkeypatch.setattr(settings, "heartbeat_interval", 0.01)
    monkeypatch.setattr(settings, "heartbeat_timeout", 10)

    async def run():
        ws = FakeWebSocket()
        conn = ClientConnection(ws)
        mark_activity(conn)
        writer = asyncio.create_task(conn.run_writer())
        beat = asyncio.create_task(run_heartbeat_task(conn))
        await asyncio.sleep(0.05)
        beat.cancel()
        conn.stop_writer()
        await writer
        return ws

    ws = asyncio.run(run())
    assert ws.sent and all(f["type"] == "heartbeat" and f["ts"] for f in ws.sent)
    assert ws.closed_with is None


def test_heartbeat_closes_silent_connection(monkeypatch):
    from acto.core.config import settings
    from acto.core.websocket.connection import ClientConnection
    from acto.core.websocket.heartbeat import mark_activity, run_heartbeat_task

    monkeypatch.setattr(settings, "heartbeat_interval", 0.01)
    monkeypatch.setattr(settings, "heartbeat_timeout", 0.005)

    async def run():
        ws = FakeWebSocket()
        conn = ClientConnection(ws)
        mark_activity(conn)
        await asyncio.wait_for(run_heartbeat_task(conn), timeout=1)
        return ws

    assert asyncio.run(run()).closed_with == (4001, "heartbeat_timeout")


class BrokenCloseWebSocket(FakeWebSocket):
    async def close(self, code=1000, reason=None):
        raise OSError("transport already gone")


def test_heartbeat_timeout_survives_failing_close(monkeypatch):
    from acto.core.config import settings
    from acto.core.websocket.connection import ClientConnection
    from acto.core.websocket.heartbeat import mark_activity, run_heartbeat_task

    monkeypatch.setattr(settings, "heartbeat_interval", 0.01)
    monkeypatch.setattr(settings, "heartbeat_timeout", 0.005)

    async def run():
        conn = ClientConnection(BrokenCloseWebSocket())
        mark_activity(conn)
        await asyncio.wait_for(run_heartbeat_task(conn), timeout=1)
        return conn

    assert asyncio.run(run()).websocket.closed_with is None
