from __future__ import annotations

import pytest

from piggybank.clock import Clock, ManualClock, SystemClock


def test_manual_clock_moves_forward_only():
    c = ManualClock(start=100)
    assert c.advance(5) == 105
    assert c.set(200) == 200
    with pytest.raises(ValueError):
        c.advance(-1)
    with pytest.raises(ValueError):
        c.set(199)
    assert c.now() == 200


def test_clocks_satisfy_protocol():
    assert isinstance(ManualClock(), Clock)
    assert isinstance(SystemClock(), Clock)
    assert SystemClock().now() > 1_600_000_000
