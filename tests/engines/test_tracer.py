"""Tests for the engine tracer decorator."""

import logging
from uuid import UUID

import pytest

from approval_engines.tracer import compute_input_fingerprint, traced_engine
from approval_kernel.domain.claim import Verdict
from approval_kernel.exceptions import DuplicateVoteError


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def trace_records():
    handler = _ListHandler()
    logger = logging.getLogger("approval_kernel.engines.tracer")
    logger.addHandler(handler)
    yield handler.records
    logger.removeHandler(handler)


class TestFingerprint:
    def test_deterministic_and_short(self):
        kwargs = {"verdict": Verdict.APPROVE, "decision_id": UUID(int=7)}
        fp = compute_input_fingerprint(("verdict", "decision_id"), kwargs)
        assert fp == compute_input_fingerprint(("verdict", "decision_id"), dict(kwargs))
        assert len(fp) == 16
        int(fp, 16)

    def test_field_values_matter(self):
        a = compute_input_fingerprint(("verdict",), {"verdict": Verdict.APPROVE})
        b = compute_input_fingerprint(("verdict",), {"verdict": Verdict.REJECT})
        assert a != b

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(("x",), {"x": None})


class TestTracedEngine:
    def test_ok_trace(self, trace_records):
        @traced_engine("sample", "2.1", fingerprint_fields=("amount",))
        def double(*, amount):
            return amount * 2

        assert double(amount=21) == 42
        [record] = trace_records
        assert record.getMessage() == "APPROVAL_ENGINE_TRACE"
        assert record.engine_name == "sample"
        assert record.engine_version == "2.1"
        assert record.outcome == "ok"
        assert record.function.endswith("double")
        assert record.duration_ms >= 0

    def test_error_trace_reraises(self, trace_records):
        @traced_engine("sample", "1.0")
        def explode():
            raise DuplicateVoteError("c-1", "a-1", 2)

        with pytest.raises(DuplicateVoteError):
            explode()
        [record] = trace_records
        assert record.outcome == "error"
        assert record.error_code == "DUPLICATE_VOTE"
        assert record.input_fingerprint == ""

    def test_preserves_function_metadata(self):
        @traced_engine("sample", "1.0")
        def documented():
            """Docstring."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Docstring."
