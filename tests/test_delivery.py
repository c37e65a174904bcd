from datetime import datetime
import io
import json
import threading

import pytest

from core import delivery
from core.delivery import ChannelSink, ConsoleSink, OutboxSink, default_sinks
from event_calendar.models import Event
from utils.config import CONFIG


def _event():
    return Event(description="Pay rent", scheduled_at=datetime(2024, 1, 1, 10, 30, 12))


def test_console_sink_prints_and_waits_for_ack():
    out = io.StringIO()
    prompts = []
    ConsoleSink(out=out, prompt=prompts.append)(_event())
    assert "[Event due] 2024-01-01 10:30  Pay rent" in out.getvalue()
    assert prompts == ["Press Enter to acknowledge... "]


def test_console_sink_auto_ack_and_eof():
    out = io.StringIO()

    def no_stdin(_):
        raise EOFError

    ConsoleSink(out=out, prompt=no_stdin)(_event())
    ConsoleSink(out=out, auto_ack=True, prompt=no_stdin)(_event())
    assert out.getvalue().count("Pay rent") == 2


def test_outbox_sink_appends_jsonl(tmp_path):
    path = tmp_path / "box" / "out.jsonl"
    sink = OutboxSink(path)
    ev = _event()
    sink(ev)
    sink(ev)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    rec = json.loads(lines[0])
    assert rec["id"] == ev.id
    assert rec["scheduled_at"] == "2024-01-01T10:30:12"
    assert rec["source"] == "eventcal"


def test_channel_sink_blocks_until_acknowledged():
    sink = ChannelSink()
    returned = threading.Event()
    t = threading.Thread(target=lambda: (sink(_event()), returned.set()))
    t.start()

    d = sink.receive(timeout=2.0)
    assert d is not None and not d.acknowledged
    assert not returned.wait(0.2)
    d.acknowledge()
    assert returned.wait(2.0)
    t.join(2.0)


def test_channel_sink_close_releases_sender():
    sink = ChannelSink()
    t = threading.Thread(target=sink, args=(_event(),))
    t.start()
    assert sink.receive(timeout=2.0) is not None
    sink.close()
    t.join(2.0)
    assert not t.is_alive()
    with pytest.raises(RuntimeError):
        sink(_event())


def test_channel_receive_times_out():
    assert ChannelSink().receive(timeout=0.05) is None


def test_default_sinks_follow_config(monkeypatch):
    monkeypatch.setitem(CONFIG["delivery"], "outbox_enabled", True)
    monkeypatch.setitem(CONFIG["delivery"], "console_echo", False)
    sinks = default_sinks()
    assert [type(s) for s in sinks] == [delivery.OutboxSink]

    monkeypatch.setitem(CONFIG["delivery"], "console_echo", True)
    sinks = default_sinks(auto_ack=True)
    assert [type(s) for s in sinks] == [delivery.OutboxSink, delivery.ConsoleSink]
    assert sinks[1].auto_ack is True
