"""
AuthGate — Audit Entry and Sink Unit Tests
===========================================

What:  Tests for LogEntry rendering, payload serialization, redaction, and
       the AuditSink console/file writer.
How:   Sinks write into pytest's tmp_path; each test uses its own logger name
       so handlers never leak between tests.

What we test:
    ✅ Line format and millisecond UTC timestamps
    ✅ Serialization never raises (cycles become <unserializable>)
    ✅ Redaction masks named keys without touching the input
    ✅ Sink lifecycle: dropped before init, flushed on shutdown
    ✅ Unwritable log path does not raise
    ✅ Concurrent writers produce whole lines only
"""

import re
import threading
from datetime import datetime, timezone

import pytest

from authgate.audit import (
    REDACTED,
    UNSERIALIZABLE,
    AuditSink,
    AuditTag,
    LogEntry,
    redact,
    serialize_payload,
    utc_timestamp,
)

LINE_PATTERN = re.compile(
    r"^\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z\] \[[A-Z]+\] \S+ - IP: \S+ - "
    r"(Params|Body|Response): .*$"
)


def make_entry(tag=AuditTag.BODY, payload=None, path="/api/auth/login"):
    return LogEntry(
        method="POST",
        path=path,
        client_address="127.0.0.1",
        tag=tag,
        payload={"user": "a"} if payload is None else payload,
    )


class TestSerializePayload:

    def test_string_is_quoted(self):
        assert serialize_payload("Express boilerplate is successful") == '"Express boilerplate is successful"'

    def test_mapping_is_compact(self):
        assert serialize_payload({"user": "a", "n": [1, 2]}) == '{"user":"a","n":[1,2]}'

    def test_non_ascii_kept_readable(self):
        assert serialize_payload({"name": "José"}) == '{"name":"José"}'

    def test_datetime_falls_back_to_str(self):
        moment = datetime(2024, 1, 15, tzinfo=timezone.utc)
        assert serialize_payload({"at": moment}) == '{"at":"2024-01-15 00:00:00+00:00"}'

    def test_cycle_is_unserializable(self):
        cyclic = {}
        cyclic["self"] = cyclic
        assert serialize_payload(cyclic) == UNSERIALIZABLE


class TestLogEntry:

    def test_timestamp_has_milliseconds_and_z(self):
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", utc_timestamp())

    def test_render_format(self):
        entry = LogEntry(
            method="GET",
            path="/",
            client_address="127.0.0.1",
            tag=AuditTag.RESPONSE,
            payload="ok",
            timestamp="2024-01-15T12:00:00.000Z",
        )
        assert entry.render() == '[2024-01-15T12:00:00.000Z] [GET] / - IP: 127.0.0.1 - Response: "ok"'

    def test_entry_is_immutable(self):
        entry = make_entry()
        with pytest.raises(AttributeError):
            entry.tag = AuditTag.PARAMS

    def test_unserializable_payload_still_renders(self):
        cyclic = []
        cyclic.append(cyclic)
        line = make_entry(payload=cyclic).render()
        assert line.endswith(f"Body: {UNSERIALIZABLE}")


class TestRedact:

    def test_masks_nested_keys_case_insensitively(self):
        body = {"email": "a@b.c", "Password": "s3cret", "profile": {"password": "x"}}
        masked = redact(body, ["password"])
        assert masked == {"email": "a@b.c", "Password": REDACTED, "profile": {"password": REDACTED}}

    def test_input_is_not_modified(self):
        body = {"password": "s3cret"}
        redact(body, ["password"])
        assert body == {"password": "s3cret"}

    def test_no_fields_returns_same_object(self):
        body = {"password": "s3cret"}
        assert redact(body, []) is body


class TestAuditSink:

    def test_writes_lines_to_file_on_shutdown(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        sink = AuditSink(str(log_file), console=False, logger_name="test.audit.file")
        first, second = make_entry(), make_entry(tag=AuditTag.RESPONSE, payload={"ok": True})

        sink.init()
        sink.emit(first)
        sink.emit(second)
        sink.shutdown()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert lines == [first.render(), second.render()]

    def test_appends_to_existing_file(self, tmp_path):
        log_file = tmp_path / "app.log"
        log_file.write_text("previous line\n", encoding="utf-8")
        sink = AuditSink(str(log_file), console=False, logger_name="test.audit.append")

        sink.init()
        sink.emit(make_entry())
        sink.shutdown()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "previous line"
        assert len(lines) == 2

    def test_console_output(self, tmp_path, capsys):
        sink = AuditSink(None, console=True, logger_name="test.audit.console")
        entry = make_entry()

        sink.init()
        sink.emit(entry)
        sink.shutdown()

        assert entry.render() in capsys.readouterr().out

    def test_emit_before_init_is_dropped(self, tmp_path):
        log_file = tmp_path / "app.log"
        sink = AuditSink(str(log_file), console=False, logger_name="test.audit.inactive")

        sink.emit(make_entry())

        assert not sink.active
        assert not log_file.exists()

    def test_init_and_shutdown_are_idempotent(self, tmp_path):
        sink = AuditSink(str(tmp_path / "app.log"), console=False, logger_name="test.audit.idem")
        sink.init()
        sink.init()
        sink.shutdown()
        sink.shutdown()
        assert not sink.active

    def test_unwritable_path_does_not_raise(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        sink = AuditSink(str(blocker / "app.log"), console=False, logger_name="test.audit.unwritable")

        sink.init()
        sink.emit(make_entry())
        sink.shutdown()

        assert blocker.read_text(encoding="utf-8") == "not a directory"

    def test_concurrent_writers_never_interleave(self, tmp_path):
        log_file = tmp_path / "app.log"
        sink = AuditSink(str(log_file), console=False, logger_name="test.audit.threads")
        sink.init()

        def writer(worker: int):
            for i in range(200):
                sink.emit(make_entry(payload={"worker": worker, "i": i, "pad": "x" * 200}))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        sink.shutdown()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 800
        assert all(LINE_PATTERN.match(line) for line in lines)
