import logging

from chunkpeek import region
from chunkpeek.errors import ChunkDecodeError
from chunkpeek.nbtwalker import walk
from chunkpeek.volume import assemble

logger = logging.getLogger(__name__)


def read_chunk(path, x, z, strict=False):
    '''
    decode the chunk at (x, z) of the region file
    x, z: chunk coordinate inside the region, [0, 31]
    the file is opened for this call only
    return: nbtwalker.Chunk
    '''
    x, z = region.check_coords(x, z)
    with open(path, 'rb') as f:
        locations = region.read_locations(f)
        location = region.locate(locations, x, z)
        logger.debug("chunk (%d, %d) of %s at %d, %d bytes", x, z, path, location.offset, location.length)
        data = region.load_chunk(f, location)
    return walk(data, strict=strict)


def read_volume(path, x, z, strict=False):
    '''
    return: volume.Volume of the chunk at (x, z), shape (256, 16, 16)
    '''
    return assemble(read_chunk(path, x, z, strict=strict).sections)


def present_chunks(path) -> list:
    with open(path, 'rb') as f:
        locations = region.read_locations(f)
    return [(x, z) for x, z, _ in region.iter_locations(locations)]


def iter_region(path, skip_errors=True, strict=False):
    '''
    yield (x, z, Volume) for every chunk the region holds
    each chunk is read with its own file handle
    skip_errors: log and skip a chunk that fails to decode instead of raising
    '''
    for x, z in present_chunks(path):
        try:
            volume = read_volume(path, x, z, strict=strict)
        except ChunkDecodeError as e:
            if not skip_errors:
                raise
            logger.warning("skipping chunk (%d, %d) of %s: %s: %s", x, z, path, type(e).__name__, e)
            continue
        yield x, z, volume
