import logging
import struct
from enum import IntEnum
from typing import NamedTuple

import numpy as np

from chunkpeek.errors import CorruptStream, IncompleteSection

#This is a light weight NBT walker.
#It only sizes the tags a chunk is made of and keeps the sections plus a few
#named fields, everything else is stepped over.

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 32
MAX_DEPTH = 512

#byte arrays are sized by name, the declared count has to agree
FIXED_BYTE_ARRAYS = {
    'Biomes': 256,
    'Add': 2048,
    'Data': 2048,
    'BlockLight': 2048,
    'SkyLight': 2048,
    'Blocks': 4096,
}
HEIGHT_MAP = 'HeightMap'
HEIGHT_MAP_SLOTS = 256
SECTIONS = 'Sections'


class TagKind(IntEnum):
    END = 0
    BYTE = 1
    SHORT = 2
    INT = 3
    LONG = 4
    FLOAT = 5
    DOUBLE = 6
    BYTE_ARRAY = 7
    STRING = 8
    LIST = 9
    COMPOUND = 10
    INT_ARRAY = 11
    LONG_ARRAY = 12


_SCALARS = {
    TagKind.BYTE: struct.Struct('>B'),
    TagKind.SHORT: struct.Struct('>h'),
    TagKind.INT: struct.Struct('>i'),
    TagKind.LONG: struct.Struct('>q'),
    TagKind.FLOAT: struct.Struct('>f'),
    TagKind.DOUBLE: struct.Struct('>d'),
}
_UBYTE = struct.Struct('>B')
_USHORT = struct.Struct('>H')
_COUNT = struct.Struct('>i')


class ListHeader(NamedTuple):
    item_kind: TagKind
    count: int


class Tag(NamedTuple):
    '''
    one decoded tag
    value: None for END and COMPOUND, a ListHeader for LIST
    '''
    kind: TagKind
    name: str
    value: object


class Section(NamedTuple):
    y: int
    blocks: bytes
    block_light: bytes
    data: bytes
    sky_light: bytes


class Chunk:
    '''
    what a walk leaves behind: the sections in stream order and
    every other named value, the last one wins when a name repeats
    '''
    def __init__(self, sections, fields):
        self.sections = sections
        self.fields = fields

    @property
    def last_update(self):
        return self.fields.get('LastUpdate')

    @property
    def height_map(self):
        heights = self.fields.get(HEIGHT_MAP)
        if heights is None:
            return None
        #ZX order, [z][x]
        return np.array(heights, dtype=np.int32).reshape((16, 16))

    def __repr__(self):
        return f"Chunk(sections={[s.y for s in self.sections]}, fields={sorted(self.fields)})"


class _Cursor:
    __slots__ = ('data', 'pos')

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.pos = 0

    @property
    def remaining(self):
        return len(self.data) - self.pos

    def take(self, n) -> bytes:
        if n < 0 or n > self.remaining:
            raise CorruptStream(f"wanted {n} bytes at {self.pos}, only {self.remaining} left")
        start = self.pos
        self.pos += n
        return self.data[start : self.pos]

    def unpack(self, fmt: struct.Struct):
        return fmt.unpack(self.take(fmt.size))[0]


def decode_height(window) -> int:
    '''
    the third byte says which hundred the fourth byte sits in
    '''
    if len(window) != 4:
        return 0
    if window[2] == 0:
        return window[3]
    if window[2] == 1:
        return window[3] + 100
    if window[2] == 2:
        return window[3] + 200
    return 0


def _kind(value, pos) -> TagKind:
    try:
        return TagKind(value)
    except ValueError:
        raise CorruptStream(f"unknown tag kind {value} at {pos}") from None


def _read_byte_array(cursor, name):
    count = cursor.unpack(_COUNT)
    length = FIXED_BYTE_ARRAYS.get(name)
    if length is None:
        raise CorruptStream(f"can't size byte array {name!r}")
    if count != length:
        raise CorruptStream(f"byte array {name!r} declares {count} bytes, expected {length}")
    return cursor.take(length)


def _read_height_map(cursor, name):
    if name != HEIGHT_MAP:
        raise CorruptStream(f"can't size int array {name!r}")
    count = cursor.unpack(_COUNT)
    if count != HEIGHT_MAP_SLOTS:
        logger.debug("HeightMap declares %d entries, reading %d", count, HEIGHT_MAP_SLOTS)
    raw = cursor.take(4 * HEIGHT_MAP_SLOTS)
    return [decode_height(raw[i : i + 4]) for i in range(0, len(raw), 4)]


def read_payload(cursor, kind: TagKind, name: str):
    '''
    decode the payload of one tag, name is only used to size arrays
    '''
    fmt = _SCALARS.get(kind)
    if fmt is not None:
        return cursor.unpack(fmt)
    if kind is TagKind.BYTE_ARRAY:
        return _read_byte_array(cursor, name)
    if kind is TagKind.STRING:
        length = cursor.unpack(_USHORT)
        return cursor.take(length).decode('utf-8', 'replace')
    if kind is TagKind.LIST:
        item_kind = _kind(cursor.unpack(_UBYTE), cursor.pos - 1)
        count = cursor.unpack(_COUNT)
        if count < 0 or (item_kind is TagKind.END and count > 0):
            raise CorruptStream(f"list {name!r} has a bad header ({item_kind.name}, {count})")
        return ListHeader(item_kind, count)
    if kind is TagKind.COMPOUND:
        return None
    if kind is TagKind.INT_ARRAY:
        return _read_height_map(cursor, name)
    if kind is TagKind.LONG_ARRAY:
        count = cursor.unpack(_COUNT)
        if count < 0:
            raise CorruptStream(f"long array {name!r} declares {count} entries")
        return struct.unpack(f'>{count}q', cursor.take(8 * count))
    raise CorruptStream(f"tag {name!r} of kind {kind.name} has no payload")


def read_tag(cursor) -> Tag:
    '''
    one tag-reader step: kind, name, payload
    an END tag has neither name nor payload
    '''
    kind = _kind(cursor.unpack(_UBYTE), cursor.pos - 1)
    if kind is TagKind.END:
        return Tag(kind, '', None)
    length = cursor.unpack(_USHORT)
    if length >= MAX_NAME_LENGTH:
        raise CorruptStream(f"tag name of {length} bytes at {cursor.pos - 3}")
    name = cursor.take(length).decode('utf-8', 'replace')
    return Tag(kind, name, read_payload(cursor, kind, name))


class SectionAccumulator:
    __slots__ = ('y', 'blocks', 'block_light', 'data', 'sky_light')

    _ARRAYS = {'Blocks': 'blocks', 'BlockLight': 'block_light', 'Data': 'data', 'SkyLight': 'sky_light'}
    FIELDS = ('Y',) + tuple(_ARRAYS)

    def __init__(self):
        self.y = self.blocks = self.block_light = self.data = self.sky_light = None

    def is_empty(self):
        return all(getattr(self, attr) is None for attr in self.__slots__)

    def feed(self, tag: Tag):
        if tag.name == 'Y':
            if tag.kind is TagKind.BYTE:
                #stored unsigned, Y is a signed byte
                self.y = tag.value - 256 if tag.value > 127 else tag.value
            elif tag.kind in (TagKind.SHORT, TagKind.INT):
                self.y = tag.value
            else:
                raise CorruptStream(f"section Y is a {tag.kind.name}")
        else:
            if tag.kind is not TagKind.BYTE_ARRAY:
                raise CorruptStream(f"section {tag.name} is a {tag.kind.name}")
            setattr(self, self._ARRAYS[tag.name], tag.value)

    def finish(self) -> Section:
        missing = [name for name, attr in zip(self.FIELDS, self.__slots__) if getattr(self, attr) is None]
        if missing:
            raise IncompleteSection(missing)
        return Section(self.y, self.blocks, self.block_light, self.data, self.sky_light)


class _Frame:
    '''an open compound or list, lists count down their remaining entries'''
    __slots__ = ('kind', 'name', 'item_kind', 'remaining', 'section')

    def __init__(self, kind, name, item_kind=None, remaining=0):
        self.kind = kind
        self.name = name
        self.item_kind = item_kind
        self.remaining = remaining
        self.section = None


def _close(frame, sections, strict):
    acc = frame.section
    if acc is None or acc.is_empty():
        return
    try:
        sections.append(acc.finish())
    except IncompleteSection as e:
        if strict:
            raise
        logger.warning("dropping section %d of the chunk: %s", len(sections), e)


def walk(data: bytes, strict=False) -> Chunk:
    '''
    walk the decompressed tag tree once, front to back
    every compound directly inside the Sections list becomes one Section
    when its END tag is reached, a partial one is dropped
    (or raised as IncompleteSection when strict)
    return: Chunk
    '''
    cursor = _Cursor(data)
    stack = []
    sections = []
    fields = {}
    while cursor.remaining:
        top = stack[-1] if stack else None
        if top is not None and top.kind is TagKind.LIST:
            if top.remaining == 0:
                stack.pop()
                continue
            top.remaining -= 1
            #list entries are unnamed, arrays are sized by the list's name
            tag = Tag(top.item_kind, top.name, read_payload(cursor, top.item_kind, top.name))
        else:
            tag = read_tag(cursor)

        if tag.kind is TagKind.END:
            if stack:
                _close(stack.pop(), sections, strict)
            continue
        if tag.kind in (TagKind.COMPOUND, TagKind.LIST):
            if len(stack) >= MAX_DEPTH:
                raise CorruptStream(f"tags nested deeper than {MAX_DEPTH}")
            if tag.kind is TagKind.LIST:
                frame = _Frame(TagKind.LIST, tag.name, tag.value.item_kind, tag.value.count)
            else:
                frame = _Frame(TagKind.COMPOUND, tag.name)
                if top is not None and top.kind is TagKind.LIST and top.name == SECTIONS:
                    frame.section = SectionAccumulator()
            stack.append(frame)
        elif top is not None and top.section is not None and tag.name in SectionAccumulator.FIELDS:
            top.section.feed(tag)
        elif top is None or top.kind is TagKind.COMPOUND:
            fields[tag.name] = tag.value

    if stack:
        logger.debug("stream ended with %d open tags", len(stack))
    logger.debug("walked %d bytes: %d sections, %d fields", len(cursor.data), len(sections), len(fields))
    return Chunk(sections, fields)
