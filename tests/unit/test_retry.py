"""tests/unit/test_retry.py

Unit tests for streamkeeper.utils.retry.RetryPolicy.
"""

from unittest import mock

import pytest

from streamkeeper.utils.retry import RetryPolicy


@pytest.fixture
def policy(loop) -> RetryPolicy:
    """RetryPolicy without jitter on the virtual loop."""
    return RetryPolicy(loop, fuzz=0)


class TestDelay:
    """Tests for delay computation."""

    @pytest.mark.parametrize("count", [-1, 0, 1])
    def test_first_attempts_use_min_timeout(self, policy, count):
        """Test attempts below min_count retry almost immediately."""
        assert policy.delay_for(count) == 0.01

    @pytest.mark.parametrize("count, expected", [(2, 2.2**2), (3, 2.2**3), (5, 2.2**5)])
    def test_exponential_growth(self, policy, count, expected):
        """Test delays follow base * exponent ** count."""
        assert policy.delay_for(count) == pytest.approx(expected)

    def test_capped_at_max_timeout(self, policy):
        """Test delays never exceed max_timeout."""
        assert policy.delay_for(50) == pytest.approx(300.0)

    @mock.patch("streamkeeper.utils.retry.random.random")
    def test_jitter_bounds(self, mock_random, loop):
        """Test jitter spreads the delay by +/- fuzz / 2."""
        policy = RetryPolicy(loop)

        mock_random.return_value = 0.0
        low = policy.delay_for(3)
        mock_random.return_value = 1.0
        high = policy.delay_for(3)

        assert low == pytest.approx(2.2**3 * 0.75)
        assert high == pytest.approx(2.2**3 * 1.25)


class TestScheduling:
    """Tests for retry_later() and clear()."""

    def test_retry_later_returns_delay_and_fires(self, policy, loop):
        """Test the callback runs after the returned delay."""
        callback = mock.Mock()

        delay = policy.retry_later(2, callback)

        assert delay == pytest.approx(4.84)
        assert policy.pending is True
        loop.advance(4.8)
        callback.assert_not_called()
        loop.advance(0.1)
        callback.assert_called_once_with()
        assert policy.pending is False

    def test_retry_later_replaces_pending(self, policy, loop):
        """Test a new schedule cancels the previous one."""
        first = mock.Mock()
        second = mock.Mock()

        policy.retry_later(0, first)
        policy.retry_later(0, second)
        loop.advance(1.0)

        first.assert_not_called()
        second.assert_called_once_with()

    def test_clear_cancels(self, policy, loop):
        """Test clear() prevents the callback."""
        callback = mock.Mock()
        policy.retry_later(0, callback)

        policy.clear()
        loop.advance(1.0)

        callback.assert_not_called()
        assert policy.pending is False

    def test_clear_is_idempotent(self, policy):
        """Test clear() with nothing pending is harmless."""
        policy.clear()
        policy.clear()
        assert policy.pending is False
