import pytest

from fakes import FixedClock


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def anyio_backend():
    return "asyncio"
