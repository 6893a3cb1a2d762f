import logging
import operator
import zlib
from typing import NamedTuple

from chunkpeek.errors import CorruptStream, NotPresent, Truncated, UnsupportedCompression

#A region file starts with 1024 locations and 1024 timestamps, 4 bytes each.
#Only the locations are read.
SECTOR_SIZE = 4096
LOCATION_LENGTH = 4096
HEADER_LENGTH = 8192
REGION_WIDTH = 32
MAX_SECTORS = 255

COMPRESSION_GZIP = 1
COMPRESSION_ZLIB = 2

logger = logging.getLogger(__name__)


class Location(NamedTuple):
    offset: int
    length: int


def check_coords(x, z):
    '''
    x, z are the chunk coordinate inside one region file, both in [0, 31]
    anything integer-like is accepted (numpy integers too)
    return: (x, z) as plain ints
    '''
    coords = []
    for axis, value in (("x", x), ("z", z)):
        try:
            index = operator.index(value)
        except TypeError:
            raise ValueError(f"{axis} dimension {value!r} is not an integer") from None
        if not 0 <= index < REGION_WIDTH:
            raise ValueError(f"{axis} dimension {value!r} out of range")
        coords.append(index)
    return tuple(coords)


def slot_offset(x, z) -> int:
    return 4 * ((x & 31) + (z & 31) * 32)


def read_locations(f) -> bytes:
    '''only the location table, the timestamps behind it are never read'''
    locations = f.read(LOCATION_LENGTH)
    if len(locations) < LOCATION_LENGTH:
        raise Truncated(f"location table is {len(locations)} bytes, expected {LOCATION_LENGTH}")
    return locations


def _decode_slot(entry: bytes) -> Location:
    sector = int.from_bytes(entry[:3], byteorder='big')
    count = entry[3]
    return Location(sector * SECTOR_SIZE, count * SECTOR_SIZE)


def locate(header: bytes, x, z) -> Location:
    '''
    resolve a chunk coordinate to its byte range in the region file
    header: at least the 4096 bytes of the location table
    return: Location(offset, length), both in bytes
    '''
    if len(header) < LOCATION_LENGTH:
        raise Truncated("location table is incomplete")
    off = slot_offset(x, z)
    entry = header[off : off + 4]
    if entry == b'\x00\x00\x00\x00':
        raise NotPresent(f"chunk ({x}, {z}) hasn't been generated")
    location = _decode_slot(entry)
    if location.offset < HEADER_LENGTH or location.length == 0:
        raise CorruptStream(f"chunk ({x}, {z}) has a bad location entry {entry.hex()}")
    return location


def iter_locations(header: bytes):
    '''
    yield (x, z, Location) for every chunk the location table marks as present
    '''
    if len(header) < LOCATION_LENGTH:
        raise Truncated("location table is incomplete")
    for i in range(REGION_WIDTH * REGION_WIDTH):
        entry = header[4 * i : 4 * i + 4]
        if entry == b'\x00\x00\x00\x00':
            continue
        z, x = divmod(i, REGION_WIDTH)
        yield x, z, _decode_slot(entry)


def load_chunk(f, location: Location) -> bytes:
    '''
    read the framed payload at location and return the decompressed tag tree
    payload: 4 bytes length (compression byte + data), 1 byte compression type, data
    '''
    f.seek(location.offset)
    raw = f.read(location.length)
    if len(raw) < location.length:
        raise Truncated(f"expected {location.length} bytes at {location.offset}, got {len(raw)}")
    if len(raw) < 5:
        raise CorruptStream(f"no payload header at {location.offset}")
    compression = raw[4]
    if compression == COMPRESSION_GZIP:
        raise UnsupportedCompression("Gzip is not supported")
    if compression != COMPRESSION_ZLIB:
        raise UnsupportedCompression(f"unknown compression type {compression}")
    length = int.from_bytes(raw[0:4], byteorder='big')
    if length == 0:
        raise CorruptStream(f"empty payload at {location.offset}")
    if length + 4 > location.length or length + 4 > MAX_SECTORS * SECTOR_SIZE:
        raise CorruptStream(f"payload length {length} overruns its {location.length} byte allocation")
    try:
        data = zlib.decompress(raw[5 : 4 + length])
    except zlib.error as e:
        raise CorruptStream(f"zlib stream at {location.offset}: {e}") from e
    logger.debug("chunk at %d: %d compressed bytes, %d decompressed", location.offset, length - 1, len(data))
    return data
