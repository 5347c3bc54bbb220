"""Tests for timestamped console output."""

import re
from io import StringIO

import pytest

from modbuild import output


@pytest.fixture
def stream(monkeypatch) -> StringIO:
    buffer = StringIO()
    monkeypatch.setattr(output, "_output_stream", buffer)
    monkeypatch.setattr(output, "_verbose", False)
    return buffer


def test_timestamp_format():
    assert re.fullmatch(r"\d{2}:\d{2}\.\d{2}", output.format_timestamp())


def test_log_phase(stream):
    output.log_phase(1, 2, "Scanning module sources...")
    assert re.fullmatch(r"\d{2}:\d{2}\.\d{2} \[1/2\] Scanning module sources\.\.\.\n", stream.getvalue())


def test_verbose_only_details(stream):
    output.log_detail("hidden detail", verbose_only=True)
    output.log_detail("shown detail")
    assert "hidden" not in stream.getvalue()
    assert "      shown detail" in stream.getvalue()

    output.set_verbose(True)
    output.log_detail("verbose detail", verbose_only=True)
    assert "verbose detail" in stream.getvalue()


def test_log_error(stream):
    output.log_error("<format> not found!")
    assert "ERROR: <format> not found!" in stream.getvalue()


def test_timed_logger_reports_done(stream):
    with output.TimedLogger("Planning", phase=(1, 1)):
        pass
    lines = stream.getvalue().splitlines()
    assert lines[0].endswith("[1/1] Planning...")
    assert re.search(r"Done \(\d+\.\d{2}s\)$", lines[1])


def test_timed_logger_silent_on_error(stream):
    with pytest.raises(ValueError):
        with output.TimedLogger("Planning", phase=(1, 1)):
            raise ValueError("cycle")
    assert "Done" not in stream.getvalue()
