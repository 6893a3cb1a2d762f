import logging

import numpy as np

#A chunk is 16 sections of 16x16x16 blocks stacked on top of each other.
#Inside a section blocks are in YZX order: index = (y << 8) + (z << 4) + x
SECTION_SIZE = 16
SECTION_COUNT = 16
WORLD_HEIGHT = SECTION_SIZE * SECTION_COUNT

logger = logging.getLogger(__name__)


def unpack_nibbles(raw: bytes) -> np.ndarray:
    '''
    2048 bytes of 4 bit values into 4096 values
    the low nibble is the even index (even column), the high nibble the odd one
    '''
    packed = np.frombuffer(raw, dtype=np.uint8)
    result = np.empty(packed.size * 2, dtype=np.uint8)
    result[::2] = packed & 0x0F
    result[1::2] = (packed & 0xF0) >> 4
    return result


def _section_cube(values) -> np.ndarray:
    return np.asarray(values, dtype=np.uint8).reshape((SECTION_SIZE, SECTION_SIZE, SECTION_SIZE))


class Volume:
    '''
    the block IDs of one chunk, indexed [level][row][column]
    level is the global vertical level in [0, 256), row is z and column is x.
    present[level] is False where no section was loaded, so a 0 there
    means "no data" instead of air.
    data, block_light and sky_light are the unpacked nibble arrays,
    indexed the same way as blocks.
    '''
    def __init__(self):
        shape = (WORLD_HEIGHT, SECTION_SIZE, SECTION_SIZE)
        self.blocks = np.zeros(shape, dtype=np.uint8)
        self.data = np.zeros(shape, dtype=np.uint8)
        self.block_light = np.zeros(shape, dtype=np.uint8)
        self.sky_light = np.zeros(shape, dtype=np.uint8)
        self.present = np.zeros(WORLD_HEIGHT, dtype=bool)

    @staticmethod
    def _check_index(level, row, column):
        #negative indices would wrap around in numpy
        if not 0 <= level < WORLD_HEIGHT:
            raise IndexError(f"level {level} outside [0, {WORLD_HEIGHT})")
        if not 0 <= row < SECTION_SIZE or not 0 <= column < SECTION_SIZE:
            raise IndexError(f"row {row}, column {column} outside [0, {SECTION_SIZE})")

    def block_at(self, level, row, column):
        '''return: the block ID, or None if that level has no section'''
        self._check_index(level, row, column)
        if not self.present[level]:
            return None
        return int(self.blocks[level, row, column])

    def data_at(self, level, row, column):
        self._check_index(level, row, column)
        if not self.present[level]:
            return None
        return int(self.data[level, row, column])

    def loaded_levels(self) -> list:
        return [int(level) for level in np.flatnonzero(self.present)]

    def masked(self) -> np.ma.MaskedArray:
        mask = np.broadcast_to(~self.present[:, None, None], self.blocks.shape)
        return np.ma.masked_array(self.blocks, mask=mask.copy())

    def block_states(self) -> np.ndarray:
        '''block ID and its variant packed as (id << 4) | data'''
        return (self.blocks.astype(np.uint16) << 4) | self.data

    def __eq__(self, other):
        if not isinstance(other, Volume):
            return NotImplemented
        return (np.array_equal(self.present, other.present)
                and np.array_equal(self.blocks, other.blocks)
                and np.array_equal(self.data, other.data)
                and np.array_equal(self.block_light, other.block_light)
                and np.array_equal(self.sky_light, other.sky_light))


def assemble(sections) -> Volume:
    '''
    place every section in its band of 16 levels, level = y * 16 + local level
    sections outside the 256 levels are skipped, a repeated y overwrites
    '''
    volume = Volume()
    for section in sections:
        base = section.y * SECTION_SIZE
        if not 0 <= base < WORLD_HEIGHT:
            logger.warning("section Y=%d is outside the chunk, skipped", section.y)
            continue
        band = slice(base, base + SECTION_SIZE)
        volume.blocks[band] = _section_cube(np.frombuffer(section.blocks, dtype=np.uint8))
        volume.data[band] = _section_cube(unpack_nibbles(section.data))
        volume.block_light[band] = _section_cube(unpack_nibbles(section.block_light))
        volume.sky_light[band] = _section_cube(unpack_nibbles(section.sky_light))
        volume.present[band] = True
    return volume
