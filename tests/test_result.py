"""
Tests for Result / Err and the provenance trail.
"""

import pytest

from urlshortener.core.result import Err, ErrorCategory, Result


class TestErr:
    """Test the error payload."""

    def test_location_starts_trail(self):
        err = Err("boom", ErrorCategory.UNEXPECTED, "Store.insert")
        assert err.called_from == (("Store.insert", "boom"),)

    def test_no_location_no_trail(self):
        err = Err("boom")
        assert err.category is ErrorCategory.UNEXPECTED
        assert err.called_from == ()
        assert err.format_called_from() == "<unknown>"

    def test_rewrap_appends(self):
        cause = ValueError("bad")
        err = Err("boom", ErrorCategory.NOT_FOUND, "inner", exception=cause)

        wrapped = err.rewrap("middle").rewrap("outer", "outer saw it")

        assert wrapped.message == "boom"
        assert wrapped.category is ErrorCategory.NOT_FOUND
        assert wrapped.exception is cause
        assert wrapped.called_from == (
            ("inner", "boom"),
            ("middle", "boom"),
            ("outer", "outer saw it"),
        )
        # The original is untouched
        assert err.called_from == (("inner", "boom"),)

    def test_format_called_from(self):
        err = Err("boom", ErrorCategory.UNEXPECTED, "inner").rewrap("outer")
        assert err.format_called_from() == "inner: boom\n    called from --> outer: boom"


class TestResult:
    """Test the success / failure container."""

    def test_ok(self):
        result = Result.ok(5)
        assert result.success
        assert result.value == 5
        assert result.error is None

    def test_ok_without_value(self):
        result = Result.ok()
        assert result.success
        assert result.value is None

    def test_fail(self):
        err = Err("boom", ErrorCategory.CLIENT_ERROR, "here")
        result = Result.fail(err)

        assert not result.success
        assert result.error is err
        with pytest.raises(ValueError):
            _ = result.value

    def test_cannot_be_both(self):
        with pytest.raises(ValueError):
            Result(True, value=1, error=Err("boom"))
        with pytest.raises(ValueError):
            Result(False)

    def test_from_error_extends_trail(self):
        inner = Result.fail(Err("missing", ErrorCategory.NOT_FOUND, "UrlService._find_row"))

        outer = Result.from_error(inner, "UrlService.lookup")

        assert outer.error.category is ErrorCategory.NOT_FOUND
        assert [location for location, _ in outer.error.called_from] == [
            "UrlService._find_row",
            "UrlService.lookup",
        ]

    def test_from_error_rejects_success(self):
        with pytest.raises(ValueError, match="Expected error result, not ok."):
            Result.from_error(Result.ok(1), "anywhere")

    def test_match(self):
        ok = Result.ok(2).match(lambda v: v * 10, lambda e: e.message)
        failed = Result.fail(Err("boom")).match(lambda v: v * 10, lambda e: e.message)
        assert ok == 20
        assert failed == "boom"
