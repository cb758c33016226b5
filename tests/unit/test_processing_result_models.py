from __future__ import annotations

import pytest

from beneficio_import.models.processing_result import BatchStatsAccumulator


def test_batch_stats_empty():
    assert BatchStatsAccumulator().get_stats() == (0, 0.0, 0.0)


def test_batch_stats_single():
    acc = BatchStatsAccumulator()
    acc.add_batch_time(0.5)
    assert acc.get_stats() == (1, 0.5, 0.5)


def test_batch_stats_p95():
    acc = BatchStatsAccumulator()
    for t in [0.1] * 19 + [1.0]:
        acc.add_batch_time(t)
    total, avg, p95 = acc.get_stats()
    assert total == 20
    assert avg == pytest.approx(0.145)
    assert 0.1 <= p95 <= 1.0
