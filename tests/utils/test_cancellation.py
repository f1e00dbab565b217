"""Tests for cooperative cancellation."""

import threading
import time

import pytest

from daowiz.errors import Cancelled
from daowiz.utils.cancellation import CancellationToken


class TestCancellationToken:
    """Test suite for CancellationToken."""

    def test_initial_state(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled(step="anything")

    def test_cancel_raises_with_step(self):
        """Test that a fired token raises Cancelled naming the step."""
        token = CancellationToken()
        token.cancel("interrupted")

        with pytest.raises(Cancelled) as exc_info:
            token.raise_if_cancelled(step="install_module:alpha")

        assert exc_info.value.step == "install_module:alpha"
        assert str(exc_info.value) == "interrupted"

    def test_wait_returns_after_timeout(self):
        CancellationToken().wait(0.01, step="poll")

    def test_wait_is_interrupted(self):
        """Test that cancelling from another thread ends a long wait early."""
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()

        started = time.monotonic()
        with pytest.raises(Cancelled):
            token.wait(30.0, step="wait_for_confirmation")

        assert time.monotonic() - started < 5.0
        timer.join()

    def test_negative_wait(self):
        CancellationToken().wait(-1.0)
