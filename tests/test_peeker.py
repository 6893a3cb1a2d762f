import logging

import numpy as np
import pytest

from chunkpeek import iter_region, present_chunks, read_chunk, read_volume
from chunkpeek.errors import CorruptStream, NotPresent, UnsupportedCompression
from tests.builders import build_region, chunk_nbt, frame, section_entry


def stone_column():
    blocks = bytearray(4096)
    blocks[857] = 7
    blocks[0] = 1
    return bytes(blocks)


@pytest.fixture
def world(region_file):
    return region_file({
        (5, 0): frame(chunk_nbt(section_entry(0), section_entry(2, blocks=stone_column()))),
        (1, 1): frame(chunk_nbt(section_entry(0)), compression=1),
        (2, 3): frame(chunk_nbt(section_entry(1))),
    })


def test_read_volume(world):
    volume = read_volume(world, 5, 0)
    assert volume.block_at(35, 5, 9) == 7
    assert volume.block_at(32, 0, 0) == 1
    assert volume.block_at(0, 0, 0) == 0
    assert volume.block_at(100, 0, 0) is None


def test_decoding_twice_gives_identical_volumes(world):
    first = read_volume(world, 5, 0)
    second = read_volume(world, 5, 0)
    assert first == second
    assert first.blocks.tobytes() == second.blocks.tobytes()


def test_read_chunk_fields(world):
    chunk = read_chunk(world, 5, 0)
    assert chunk.last_update == 1234
    assert [s.y for s in chunk.sections] == [0, 2]


def test_absent_chunk(world):
    with pytest.raises(NotPresent):
        read_volume(world, 0, 0)


def test_absent_chunk_in_header_only_file(region_file):
    path = region_file({}, raw=bytes(8192))
    with pytest.raises(NotPresent):
        read_chunk(path, 5, 0)


def test_gzip_chunk(world):
    with pytest.raises(UnsupportedCompression):
        read_volume(world, 1, 1)


def test_coordinates_checked_before_opening(tmp_path):
    with pytest.raises(ValueError):
        read_chunk(tmp_path / "missing.mca", 32, 0)


def test_present_chunks(world):
    assert present_chunks(world) == [(5, 0), (1, 1), (2, 3)]


def test_iter_region_skips_bad_chunks(world, caplog):
    with caplog.at_level(logging.WARNING, logger="chunkpeek.peeker"):
        decoded = {(x, z): volume for x, z, volume in iter_region(world)}
    assert sorted(decoded) == [(2, 3), (5, 0)]
    assert decoded[(2, 3)].loaded_levels() == list(range(16, 32))
    assert "UnsupportedCompression" in caplog.text


def test_iter_region_raises_without_skip(world):
    with pytest.raises(UnsupportedCompression):
        list(iter_region(world, skip_errors=False))


def test_corrupt_chunk_is_isolated(region_file):
    good = frame(chunk_nbt(section_entry(0)))
    bad = frame(chunk_nbt(section_entry(0))[:2000])
    path = region_file({(0, 0): bad, (1, 0): good})
    with pytest.raises(CorruptStream):
        read_volume(path, 0, 0)
    assert read_volume(path, 1, 0).loaded_levels() == list(range(16))
    assert [(x, z) for x, z, _ in iter_region(path)] == [(1, 0)]


def test_build_region_layout():
    raw = build_region({(5, 0): frame(b'\x00')})
    assert raw[20:24] == bytes([0x00, 0x00, 0x02, 0x01])


def test_absent_chunk_in_location_table_only_file(region_file):
    path = region_file({}, raw=bytes(4096))
    with pytest.raises(NotPresent):
        read_chunk(path, 5, 0)
    assert present_chunks(path) == []


def test_read_volume_with_numpy_coordinates(world):
    volume = read_volume(world, np.int64(5), np.arange(4)[0])
    assert volume.block_at(35, 5, 9) == 7
