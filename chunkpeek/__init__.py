'''
Reads the block sections of one chunk out of a region file
and lays them out as a 256x16x16 block ID volume.
'''

from chunkpeek.errors import (
    ChunkDecodeError,
    CorruptStream,
    IncompleteSection,
    NotPresent,
    Truncated,
    UnsupportedCompression,
)
from chunkpeek.nbtwalker import Chunk, Section, TagKind, decode_height, walk
from chunkpeek.peeker import iter_region, present_chunks, read_chunk, read_volume
from chunkpeek.region import Location, load_chunk, locate
from chunkpeek.volume import Volume, assemble, unpack_nibbles

__version__ = "0.1.0"

