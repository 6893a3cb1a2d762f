import pytest

from tests.builders import build_region


@pytest.fixture
def region_file(tmp_path):
    '''write a region file holding the given framed payloads, return its path'''
    def write(chunks, name="r.0.0.mca", raw=None):
        path = tmp_path / name
        path.write_bytes(build_region(chunks) if raw is None else raw)
        return path
    return write
