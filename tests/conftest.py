"""
测试公共 fixture：可控时钟 + 内存两级存储
"""

import os
import sys

import pytest

# 确保仓库根目录在 sys.path
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


class FakeClock:
    """手动推进的时钟，同时提供秒级与毫秒级读数"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def time(self) -> float:
        return self.now

    def ms(self) -> int:
        return int(self.now * 1000)

    def advance(self, seconds: float) -> None:
        self.now += seconds

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def engine(clock):
    from pecunia_service.layers.engine import FinanceCacheEngine
    from pecunia_service.layers.stores import MemoryStore, MemoryTTLStore

    return FinanceCacheEngine(
        MemoryTTLStore(max_entries=100, clock=clock.time),
        MemoryStore(),
        now_ms=clock.ms,
    )
