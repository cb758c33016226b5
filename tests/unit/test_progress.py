from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from beneficio_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True
    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


def test_tracker_with_tty_drives_tqdm():
    with patch('beneficio_import.services.progress.is_tty_enabled', return_value=True), \
         patch('beneficio_import.services.progress.tqdm') as mock_tqdm:
        with ProgressTracker(2) as tracker:
            tracker.start_file(Path("a.xlsx"))
            tracker.set_postfix(success=1)
            tracker.finish_file(success=True)

        mock_tqdm.assert_called_once_with(
            total=2,
            desc="Importing files",
            unit="file",
            leave=True,
            position=0,
            ncols=80,
            ascii=True,
        )
        bar = mock_tqdm.return_value
        bar.set_description.assert_any_call("Importing files (a.xlsx)")
        bar.update.assert_called_once_with(1)
        bar.close.assert_called_once()
        assert tracker.current_file == 1
        assert tracker.pbar is None


def test_tracker_without_tty_is_silent():
    with patch('beneficio_import.services.progress.is_tty_enabled', return_value=False), \
         patch('beneficio_import.services.progress.tqdm') as mock_tqdm:
        tracker = ProgressTracker(3)
        tracker.start_file(Path("a.xlsx"))
        tracker.finish_file()
        tracker.close()
        mock_tqdm.assert_not_called()
        assert tracker.enabled is False
