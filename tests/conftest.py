import pytest

from content.infrastructure.client.key_pool import KeyPool
from helpers import FakeProvider


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def pool():
    return KeyPool(["key-a", "key-b", "key-c"], quota_limit=10000, error_threshold=5)
