'''
Error kinds raised while decoding one chunk.
Each one is terminal for that chunk only, the caller decides to abort or skip.
'''


class ChunkDecodeError(Exception):
    pass


class NotPresent(ChunkDecodeError):
    '''the location entry is zero, the chunk hasn't been generated yet'''
    pass


class Truncated(ChunkDecodeError):
    '''the file is shorter than the header or the location entry implies'''
    pass


class UnsupportedCompression(ChunkDecodeError):
    pass


class CorruptStream(ChunkDecodeError):
    '''
    the payload can't be decompressed, or the tag tree runs past the buffer,
    or it holds a tag this decoder can't size
    '''
    pass


class IncompleteSection(ChunkDecodeError):
    def __init__(self, missing):
        self.missing = tuple(missing)
        super().__init__("section is missing " + ", ".join(self.missing))
