import json
import logging

import pytest

from observability.logging import ColoredFormatter, JSONFormatter, log_performance, setup_logging
from observability.prometheus_metrics import (
    get_metrics_payload,
    record_document_failure,
    record_indexing_metrics,
    record_search_metrics,
)


def _record(message="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("handbook.test", level, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:

    def test_json_formatter(self):
        entry = json.loads(JSONFormatter("svc").format(_record(blocks=3)))

        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["service"] == "svc"
        assert entry["logger"] == "handbook.test"
        assert entry["blocks"] == 3

    def test_colored_formatter_plain(self):
        line = ColoredFormatter(use_colors=False).format(_record(level=logging.WARNING))

        assert "WARNING" in line
        assert "handbook.test | hello" in line
        assert "\033[" not in line

    def test_colored_formatter_shows_context(self):
        line = ColoredFormatter(use_colors=False).format(_record(query="apple", result_count=2))
        assert line.endswith("hello | query=apple result_count=2")

    def test_json_formatter_keeps_nested_context(self):
        entry = json.loads(JSONFormatter().format(_record(blocks_by_kind={"drawer": 2})))
        assert entry["blocks_by_kind"] == {"drawer": 2}
        assert entry["service"] == "handbook-search"


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_file_logging_is_json(self, tmp_path):
        log_file = tmp_path / "logs" / "search.log"
        setup_logging(level="DEBUG", log_file=str(log_file), use_json=True)
        logging.getLogger("handbook.test").info("indexed", extra={"blocks": 7})
        for handler in logging.getLogger().handlers:
            handler.flush()

        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert entry["message"] == "indexed"
        assert entry["blocks"] == 7
        assert logging.getLogger().level == logging.DEBUG


class TestLogPerformance:

    def test_slow_call_is_logged(self, caplog):
        @log_performance(logger_name="handbook.perf", threshold_ms=-1.0)
        def work():
            return 42

        with caplog.at_level(logging.WARNING, logger="handbook.perf"):
            assert work() == 42
        assert "Slow function execution: work" in caplog.text

    def test_failure_is_logged_and_reraised(self, caplog):
        @log_performance(logger_name="handbook.perf")
        def boom():
            raise ValueError("bad")

        with caplog.at_level(logging.ERROR, logger="handbook.perf"):
            with pytest.raises(ValueError):
                boom()
        assert "Function failed: boom" in caplog.text


def test_metrics_payload_contains_recorded_series():
    record_search_metrics(0.01, 2)
    record_indexing_metrics(0.5, {"heading": 4, "drawer": 1})
    record_document_failure("load")

    payload = get_metrics_payload().decode("utf-8")
    assert 'handbook_search_requests_total{status="success"}' in payload
    assert 'handbook_index_blocks_total{kind="drawer"}' in payload
    assert 'handbook_index_documents_failed_total{stage="load"}' in payload
    assert "handbook_index_build_duration_seconds_bucket" in payload
