"""Tests for the run journal."""

from __future__ import annotations

import logging
import os
import time

from autoqac.core.journal import Journal, NullJournal


class TestJournal:
    def test_writes_lines(self, tmp_path):
        path = tmp_path / "logs" / "journal.log"
        with Journal(path) as journal:
            journal.write("Currently cleaning: %s", "Dirty.esp")
            journal.write("Dirty.esp -> Nothing to clean")

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("Currently cleaning: Dirty.esp")

    def test_appends_across_runs(self, tmp_path):
        path = tmp_path / "journal.log"
        with Journal(path) as journal:
            journal.write("first")
        with Journal(path) as journal:
            journal.write("second")
        assert len(path.read_text().splitlines()) == 2

    def test_expired_journal_is_cleared(self, tmp_path):
        path = tmp_path / "journal.log"
        path.write_text("old run\n")
        old = time.time() - 10 * 86400
        os.utime(path, (old, old))

        with Journal(path, expiration_days=7) as journal:
            journal.write("new run")

        text = path.read_text()
        assert "old run" not in text
        assert "expired after 7 days" in text
        assert "new run" in text

    def test_recent_journal_is_kept(self, tmp_path):
        path = tmp_path / "journal.log"
        path.write_text("old run\n")
        with Journal(path, expiration_days=7) as journal:
            journal.write("new run")
        assert "old run" in path.read_text()

    def test_disabled(self, tmp_path):
        path = tmp_path / "journal.log"
        with Journal(path, enabled=False) as journal:
            journal.write("ignored")
        assert not path.exists()

    def test_null_journal(self):
        NullJournal().write("nothing %s", "here")

    def test_journals_share_one_logger(self, tmp_path):
        before = len(logging.Logger.manager.loggerDict)
        for i in range(5):
            with Journal(tmp_path / f"journal{i}.log") as journal:
                journal.write("run %d", i)
        assert len(logging.Logger.manager.loggerDict) <= before + 1

    def test_open_journals_keep_their_own_lines(self, tmp_path):
        first_path = tmp_path / "first.log"
        second_path = tmp_path / "second.log"
        with Journal(first_path) as first, Journal(second_path) as second:
            first.write("only in first")
            second.write("only in second")

        assert "only in second" not in first_path.read_text()
        assert "only in first" not in second_path.read_text()
