"""
Tests for ingestion progress notifiers and the config-driven factory.
"""

import io
import logging
from unittest.mock import Mock

import pytest

from greyseal.notifications import (
    CompositeNotifier,
    ConsoleNotifier,
    IngestionStage,
    LoggingNotifier,
    NotifierInterface,
    NullNotifier,
    ProgressEvent,
    create_notifier_from_config,
)


class TestProgressEvent:
    """Event helpers"""

    def test_defaults(self):
        event = ProgressEvent(stage=IngestionStage.LOADING, message="Loading")

        assert event.current == 0
        assert event.total == 0
        assert event.resource_id is None
        assert event.at.tzinfo is not None

    def test_fraction(self):
        assert ProgressEvent(IngestionStage.EMBEDDING, "", current=25, total=100).fraction == 0.25
        assert ProgressEvent(IngestionStage.EMBEDDING, "", current=0, total=0).fraction is None
        assert ProgressEvent(IngestionStage.EMBEDDING, "", current=12, total=10).fraction == 1.0

    def test_failed(self):
        assert ProgressEvent(IngestionStage.ERROR, "Ingestion failed", error="boom").failed
        assert not ProgressEvent(IngestionStage.COMPLETE, "Done").failed

    def test_describe(self):
        assert ProgressEvent(IngestionStage.STORING, "Storing", current=3, total=3).describe() == "storing: Storing (3/3)"
        assert ProgressEvent(IngestionStage.ERROR, "Ingestion failed", error="404").describe() == "error: 404"

    def test_stage_values_are_lowercase_names(self):
        assert [s.value for s in IngestionStage] == [s.name.lower() for s in IngestionStage]


@pytest.mark.parametrize("notifier", [
    NullNotifier(),
    ConsoleNotifier(output=io.StringIO()),
    LoggingNotifier(),
    CompositeNotifier([]),
])
def test_implements_interface(notifier):
    assert isinstance(notifier, NotifierInterface)


class TestConsoleNotifier:
    """Line-per-step terminal output"""

    @pytest.fixture
    def output(self):
        return io.StringIO()

    @pytest.fixture
    def notifier(self, output):
        return ConsoleNotifier(output=output)

    def test_start_prefers_locator(self, notifier, output):
        notifier.start("res-1", "https://example.com/article")
        notifier.start("res-42")

        lines = output.getvalue().splitlines()
        assert lines == ["Ingesting https://example.com/article", "Ingesting res-42"]

    def test_step_with_counts(self, notifier, output):
        notifier.notify(ProgressEvent(IngestionStage.STORING, "Stored chunks", current=4, total=4))

        assert output.getvalue() == "  storing: Stored chunks (4/4)\n"

    def test_counts_can_be_hidden(self, output):
        ConsoleNotifier(output=output, show_counts=False).notify(
            ProgressEvent(IngestionStage.STORING, "Stored chunks", current=4, total=4)
        )

        assert output.getvalue() == "  storing: Stored chunks\n"

    def test_intermediate_counts_are_skipped(self, notifier, output):
        notifier.notify(ProgressEvent(IngestionStage.EMBEDDING, "Generating embeddings", current=10, total=30))

        assert output.getvalue() == ""

    def test_error_shows_error_text(self, notifier, output):
        notifier.notify(ProgressEvent(IngestionStage.ERROR, "Ingestion failed", error="bad status code 404"))

        assert "error: bad status code 404" in output.getvalue()

    def test_finish(self, notifier, output):
        notifier.start("res-1", "notes.md")
        notifier.finish(success=True, message="Stored 42 chunks")
        notifier.finish(success=False, message="Connection failed")

        lines = output.getvalue().splitlines()
        assert lines[1].startswith("  done: Stored 42 chunks in ")
        assert lines[2].startswith("  failed: Connection failed in ")

    def test_defaults_to_stderr(self, capsys):
        ConsoleNotifier().start("res-1", "notes.md")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Ingesting notes.md" in captured.err


class TestLoggingNotifier:
    """Progress routed to the greyseal.progress logger"""

    def test_events_carry_resource_id(self, caplog):
        notifier = LoggingNotifier(level=logging.INFO)

        with caplog.at_level(logging.DEBUG, logger="greyseal.progress"):
            notifier.start("res-7", "notes.md")
            notifier.notify(ProgressEvent(IngestionStage.STORING, "Storing 3 chunks"))
            notifier.finish(success=True, message="Stored 3 chunks")

        messages = [r.getMessage() for r in caplog.records]
        assert messages == [
            "[res-7] started notes.md",
            "[res-7] storing: Storing 3 chunks",
            "[res-7] finished: Stored 3 chunks",
        ]
        assert {r.levelno for r in caplog.records} == {logging.INFO}

    def test_failures_logged_at_warning(self, caplog):
        notifier = LoggingNotifier(level=logging.DEBUG)

        with caplog.at_level(logging.DEBUG, logger="greyseal.progress"):
            notifier.notify(ProgressEvent(IngestionStage.ERROR, "failed", error="boom", resource_id="r1"))
            notifier.finish(success=False, message="boom")

        assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.WARNING]
        assert caplog.records[0].getMessage() == "[r1] error: boom"


class TestCompositeNotifier:
    """Fan-out with failure isolation"""

    def test_forwards_every_call(self):
        children = [Mock(), Mock()]
        composite = CompositeNotifier(children)
        event = ProgressEvent(IngestionStage.LOADING, "Loading")

        composite.start("res-1", "notes.md")
        composite.notify(event)
        composite.finish(True, "done")

        for child in children:
            child.start.assert_called_once_with("res-1", "notes.md")
            child.notify.assert_called_once_with(event)
            child.finish.assert_called_once_with(True, "done")

    def test_failing_child_is_logged_and_skipped(self, caplog):
        failing, healthy = Mock(), Mock()
        failing.notify.side_effect = RuntimeError("display failed")

        with caplog.at_level(logging.WARNING):
            CompositeNotifier([failing, healthy]).notify(ProgressEvent(IngestionStage.LOADING, "Loading"))

        healthy.notify.assert_called_once()
        assert any("display failed" in r.getMessage() for r in caplog.records)


class TestFactory:
    """create_notifier_from_config"""

    @pytest.mark.parametrize("section", [None, {}])
    def test_empty_section_is_silent(self, section):
        assert isinstance(create_notifier_from_config(section), NullNotifier)

    def test_console_enabled_by_default(self):
        notifier = create_notifier_from_config({"console": {"show_counts": False}})

        assert isinstance(notifier, ConsoleNotifier)
        assert notifier.show_counts is False

    def test_everything_disabled(self):
        assert isinstance(create_notifier_from_config({"console": {"enabled": False}}), NullNotifier)

    def test_log_only(self):
        notifier = create_notifier_from_config({
            "console": {"enabled": False},
            "log": {"enabled": True, "level": "info"},
        })

        assert isinstance(notifier, LoggingNotifier)
        assert notifier.level == logging.INFO

    def test_unknown_level_falls_back_to_debug(self):
        notifier = create_notifier_from_config({"console": {"enabled": False}, "log": {"enabled": True, "level": "loud"}})

        assert notifier.level == logging.DEBUG

    def test_both_enabled(self):
        notifier = create_notifier_from_config({"console": {}, "log": {"enabled": True}})

        assert isinstance(notifier, CompositeNotifier)
        assert [type(n) for n in notifier.notifiers] == [ConsoleNotifier, LoggingNotifier]
