import pytest

from repairfinder.core.errors import EndpointExhaustedError
from tests.helpers import FakeClock, RecordingSleep, StubEndpointClient


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def exhausted_client():
    return StubEndpointClient(error=EndpointExhaustedError(6, RuntimeError("boom")))
