import pytest

from plategen.capabilities import load_kernel
from plategen.fonts import BlockFont


@pytest.fixture(scope="session")
def kernel():
    return load_kernel().unwrap()


@pytest.fixture
def block_font():
    return BlockFont()
