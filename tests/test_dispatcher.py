"""
Tests for the wave dispatcher in src/pipeline_extraction.py.
"""

import subprocess
import sys
import textwrap
import threading
import time

import pytest

from src.errors import ConfigurationError, InputError, ItemTransportError
from src.models import Failure, Record, Success
from src.pipeline_extraction import INTERNAL_ERROR, TIMEOUT, TRANSPORT_ERROR, dispatch


def make_records(count):
    return [Record.from_text(f"Product {i}", name=f"P{i}") for i in range(count)]


@pytest.fixture
def succeed(make_payload):
    def _process(index, record):
        return Success(payload=make_payload(name=record.name))

    return _process


class TestWaves:
    def test_seven_records_three_waves(self, succeed):
        result = dispatch(make_records(7), succeed, cap=10, concurrency=3)

        assert len(result.outcomes) == 7
        assert result.wave_sizes == [3, 3, 1]
        assert result.truncated is False
        assert [o.record.name for o in result.outcomes] == [f"P{i}" for i in range(7)]

    def test_cap_truncates(self, succeed):
        result = dispatch(make_records(15), succeed, cap=10, concurrency=3)

        assert len(result.outcomes) == 10
        assert result.truncated is True
        assert result.outcomes[-1].record.name == "P9"

    def test_waves_do_not_overlap(self, make_payload):
        events = []
        lock = threading.Lock()

        def process(index, record):
            with lock:
                events.append(("start", index))
            time.sleep(0.02 * (3 - index % 3))
            with lock:
                events.append(("end", index))
            return Success(payload=make_payload())

        dispatch(make_records(6), process, concurrency=3)

        first_wave_ends = [events.index(("end", i)) for i in range(3)]
        second_wave_starts = [events.index(("start", i)) for i in range(3, 6)]
        assert max(first_wave_ends) < min(second_wave_starts)

    def test_in_flight_never_exceeds_width(self, make_payload):
        state = {"now": 0, "peak": 0}
        lock = threading.Lock()

        def process(index, record):
            with lock:
                state["now"] += 1
                state["peak"] = max(state["peak"], state["now"])
            time.sleep(0.01)
            with lock:
                state["now"] -= 1
            return Success(payload=make_payload())

        dispatch(make_records(9), process, concurrency=2)
        assert state["peak"] <= 2

    def test_order_kept_when_completion_order_differs(self, make_payload):
        def process(index, record):
            time.sleep(0.05 - 0.01 * index)
            return Success(payload=make_payload(name=record.name))

        result = dispatch(make_records(4), process, concurrency=4)
        assert [o.payload.identity.name for o in result.outcomes] == ["P0", "P1", "P2", "P3"]


class TestFailures:
    def test_one_transport_failure_does_not_abort(self, make_payload):
        def process(index, record):
            if index == 2:
                raise ConnectionError("HTTP 502 from collaborator")
            return Success(payload=make_payload())

        result = dispatch(make_records(5), process, concurrency=2)

        assert len(result.outcomes) == 5
        assert sum(isinstance(o, Success) for o in result.outcomes) == 4
        failure = result.outcomes[2]
        assert isinstance(failure, Failure)
        assert failure.reason == TRANSPORT_ERROR
        assert "502" in failure.detail
        assert failure.record.name == "P2"

    def test_adapter_transport_error(self):
        def process(index, record):
            raise ItemTransportError("OpenAI request failed after 4 attempts")

        result = dispatch(make_records(1), process)
        assert result.outcomes[0].reason == TRANSPORT_ERROR
        assert result.outcomes[0].kind == "transport"

    def test_unexpected_exception_is_an_internal_error(self, make_payload):
        def process(index, record):
            if index == 1:
                raise RecursionError("maximum recursion depth exceeded")
            return Success(payload=make_payload())

        result = dispatch(make_records(3), process, concurrency=3)
        failure = result.outcomes[1]

        assert failure.reason == INTERNAL_ERROR
        assert failure.kind == "internal"
        assert failure.detail.startswith("RecursionError")
        assert isinstance(result.outcomes[2], Success)

    def test_failure_outcomes_pass_through(self):
        def process(index, record):
            return Failure("invalid response structure", kind="shape")

        result = dispatch(make_records(2), process, concurrency=2)
        assert [o.reason for o in result.outcomes] == ["invalid response structure"] * 2

    def test_configuration_error_aborts_run(self):
        def process(index, record):
            raise ConfigurationError("401 unauthenticated")

        with pytest.raises(ConfigurationError):
            dispatch(make_records(4), process, concurrency=2)

    def test_empty_input_rejected(self, succeed):
        with pytest.raises(InputError):
            dispatch([], succeed)

    def test_invalid_width_rejected(self, succeed):
        with pytest.raises(ValueError):
            dispatch(make_records(1), succeed, concurrency=0)


class TestTimeout:
    def test_unresolved_and_unscheduled_items_time_out(self, make_payload):
        release = threading.Event()

        def process(index, record):
            if index == 1:
                release.wait(5)
            return Success(payload=make_payload())

        try:
            result = dispatch(make_records(5), process, concurrency=2, timeout_seconds=0.2)
        finally:
            release.set()

        assert result.timed_out is True
        assert isinstance(result.outcomes[0], Success)
        assert [o.reason for o in result.outcomes[1:]] == [TIMEOUT] * 4
        assert result.wave_sizes == [2]
        assert result.outcomes[4].record.name == "P4"

    def test_budget_not_hit(self, succeed):
        result = dispatch(make_records(3), succeed, concurrency=2, timeout_seconds=5)
        assert result.timed_out is False
        assert all(isinstance(o, Success) for o in result.outcomes)

    def test_abandoned_item_does_not_delay_process_exit(self, base_dir):
        script = textwrap.dedent(
            """
            import time
            from src.models import Failure, Record
            from src.pipeline_extraction import dispatch

            def process(index, record):
                time.sleep(5)
                return Failure("late")

            result = dispatch([Record.from_text("slow item")], process, timeout_seconds=0.2)
            print(result.outcomes[0].reason)
            """
        )
        started = time.monotonic()
        completed = subprocess.run(
            [sys.executable, "-c", script],
            cwd=base_dir,
            capture_output=True,
            text=True,
            timeout=30,
        )
        elapsed = time.monotonic() - started

        assert completed.returncode == 0, completed.stderr
        assert completed.stdout.strip() == TIMEOUT
        assert elapsed < 4
