from pathlib import Path

import pytest

from test.helpers import make_read


@pytest.fixture
def data_dir():
    return Path(__file__).parent / "data"


@pytest.fixture
def read_pair():
    """
    An unmapped read pair - first of pair, then second of pair.
    """
    return (
        make_read("test", flag=0x4D),  # paired, unmapped, mate unmapped, read1
        make_read("test", flag=0x8D),  # paired, unmapped, mate unmapped, read2
    )


@pytest.fixture
def unpaired_read():
    return make_read("foo", flag=0x4)
