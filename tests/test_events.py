"""Tests for the Submission event emitter."""

from __future__ import annotations

import pytest

from contract_handle.binding.events import Submission


class TestSubmission:
    def test_on_is_chainable(self) -> None:
        seen = []
        submission = Submission()
        result = submission.on("transactionHash", seen.append).on("error", seen.append)
        assert result is submission
        assert submission.emit("transactionHash", "0x01") is True
        assert seen == ["0x01"]

    def test_emit_without_listeners(self) -> None:
        assert Submission().emit("receipt", {}) is False

    def test_once(self) -> None:
        seen = []
        submission = Submission().once("confirmation", lambda n, r: seen.append(n))
        submission.emit("confirmation", 0, {})
        submission.emit("confirmation", 1, {})
        assert seen == [0]
        assert submission.listener_count("confirmation") == 0

    def test_off(self) -> None:
        seen = []
        submission = Submission().on("error", seen.append)
        submission.off("error", seen.append)
        submission.emit("error", RuntimeError("x"))
        assert seen == []

    def test_raising_listener_does_not_stop_others(self) -> None:
        seen = []

        def broken(*args) -> None:
            raise RuntimeError("listener failure")

        submission = Submission().on("receipt", broken).on("receipt", seen.append)
        submission.emit("receipt", {"status": "0x1"})
        assert seen == [{"status": "0x1"}]

    def test_remove_all_listeners(self) -> None:
        submission = Submission().on("error", print).on("receipt", print)
        submission.remove_all_listeners()
        assert submission.listener_count("error") == 0
        assert submission.listener_count("receipt") == 0

    def test_unknown_event(self) -> None:
        with pytest.raises(ValueError, match="Unknown submission event"):
            Submission().on("data", print)
