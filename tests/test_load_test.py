"""Tests for the charge load generator script."""

import asyncio

from scripts import load_test


def test_empty_run_prints_summary(capsys):
    """A run with no requests still prints a full summary."""

    asyncio.run(load_test.run(0, 1, "http://127.0.0.1:9"))

    out = capsys.readouterr().out
    assert "total=0" in out
    assert "avg_ms=0.00" in out
    assert "charge_success_rate" not in out
