from __future__ import annotations

from unittest.mock import Mock, patch

from installment_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    """Test cases for ProgressTracker class."""

    def test_init_with_tty_enabled(self):
        with patch('installment_import.services.progress.is_tty_enabled', return_value=True), \
             patch('installment_import.services.progress.tqdm') as mock_tqdm:

            tracker = ProgressTracker(5, description="Validating transactions")

            assert tracker.total == 5
            assert tracker.current == 0
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Validating transactions",
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('installment_import.services.progress.is_tty_enabled', return_value=False), \
             patch('installment_import.services.progress.tqdm') as mock_tqdm:
            tracker = ProgressTracker(5)
            assert tracker.enabled is False
            assert tracker.pbar is None
            mock_tqdm.assert_not_called()

    def test_advance_updates_bar(self):
        mock_pbar = Mock()
        with patch('installment_import.services.progress.is_tty_enabled', return_value=True), \
             patch('installment_import.services.progress.tqdm', return_value=mock_pbar):
            tracker = ProgressTracker(10)
            tracker.advance()
            tracker.advance(3)
            tracker.set_postfix(ok=3, failed=1)

        assert tracker.current == 4
        assert mock_pbar.update.call_count == 2
        mock_pbar.update.assert_called_with(3)
        mock_pbar.set_postfix.assert_called_once_with(ok=3, failed=1)

    def test_advance_without_tty_only_counts(self):
        with patch('installment_import.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(2)
            tracker.advance(2)
            tracker.set_postfix(ok=2)
            tracker.close()
        assert tracker.current == 2

    def test_context_manager_closes_bar(self):
        mock_pbar = Mock()
        with patch('installment_import.services.progress.is_tty_enabled', return_value=True), \
             patch('installment_import.services.progress.tqdm', return_value=mock_pbar):
            with ProgressTracker(1) as tracker:
                tracker.advance()
        mock_pbar.close.assert_called_once()
        assert tracker.pbar is None
