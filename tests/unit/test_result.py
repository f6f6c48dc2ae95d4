"""Tests for the Result type."""

import pytest
from hypothesis import given, strategies as st

from src.agentic.result import Err, Ok


class TestOk:
    def test_is_ok(self) -> None:
        result = Ok(42)
        assert result.is_ok() is True
        assert result.is_err() is False

    def test_unwrap(self) -> None:
        assert Ok("hello").unwrap() == "hello"

    def test_unwrap_err_raises(self) -> None:
        with pytest.raises(ValueError, match="unwrap_err"):
            Ok(1).unwrap_err()

    def test_unwrap_or(self) -> None:
        assert Ok(42).unwrap_or(0) == 42

    def test_map(self) -> None:
        assert Ok(5).map(lambda x: x * 2).unwrap() == 10

    def test_and_then_chains(self) -> None:
        result = Ok(5).and_then(lambda x: Ok(x + 1))
        assert result.unwrap() == 6

    def test_and_then_can_fail(self) -> None:
        result = Ok(5).and_then(lambda x: Err(f"bad {x}"))
        assert result.is_err()
        assert result.unwrap_err() == "bad 5"

    @given(st.integers())
    def test_ok_preserves_value(self, value: int) -> None:
        assert Ok(value).unwrap() == value


class TestErr:
    def test_is_err(self) -> None:
        result = Err("something failed")
        assert result.is_err() is True
        assert result.is_ok() is False

    def test_unwrap_raises(self) -> None:
        with pytest.raises(ValueError, match="fail"):
            Err("fail").unwrap()

    def test_unwrap_err(self) -> None:
        assert Err("fail").unwrap_err() == "fail"

    def test_unwrap_or(self) -> None:
        assert Err("fail").unwrap_or(42) == 42

    def test_map_noop(self) -> None:
        mapped = Err("fail").map(lambda x: x * 2)
        assert mapped.is_err()
        assert mapped.unwrap_err() == "fail"

    def test_and_then_short_circuits(self) -> None:
        calls = []
        result = Err("fail").and_then(lambda x: calls.append(x) or Ok(x))
        assert result.is_err()
        assert calls == []

    @given(st.text())
    def test_err_preserves_message(self, message: str) -> None:
        assert Err(message).unwrap_err() == message
