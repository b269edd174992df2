"""
Lossless codecs for the quantized data of the reference compression backends.
"""

__all__ = [
    "HuffmanCodec",
    "BitPackCodec",
    "EntropyCodec",
    "BlockLZ4Codec",
    "Lossless",
]

from dataclasses import dataclass
from io import BytesIO

import numcodecs
import numcodecs.compat
import numcodecs.registry
import numpy as np
import varint
from dahuffman import HuffmanCodec as DaHuffmanCodec
from dahuffman.huffmancodec import _EOF
from numcodecs.abc import Codec
from typing_extensions import Buffer  # MSPV 3.12

from .config import BackendConfig


def zigzag_encode(a: np.ndarray) -> np.ndarray:
    """
    Map signed integers 0, -1, 1, -2, ... to unsigned integers 0, 1, 2, 3, ...
    """

    a = a.astype(np.int64)
    return ((a << 1) ^ (a >> 63)).view(np.uint64)


def zigzag_decode(z: np.ndarray) -> np.ndarray:
    z = z.astype(np.uint64)
    return ((z >> np.uint64(1)) ^ (np.uint64(0) - (z & np.uint64(1)))).view(np.int64)


def _encode_header(message: list[bytes], dtype: np.dtype, shape: tuple[int, ...]):
    message.append(varint.encode(len(dtype.str)))
    message.append(dtype.str.encode("ascii"))

    message.append(varint.encode(len(shape)))
    for s in shape:
        message.append(varint.encode(s))


def _decode_header(b_io: BytesIO) -> tuple[np.dtype, tuple[int, ...]]:
    dtype = np.dtype(b_io.read(varint.decode_stream(b_io)).decode("ascii"))

    shape = tuple(
        varint.decode_stream(b_io) for _ in range(varint.decode_stream(b_io))
    )

    return dtype, shape


class HuffmanCodec(Codec):
    """
    Block-wise Huffman encoding of signed integer arrays.

    The integers are zig-zag mapped to symbols. Symbols below
    `dict_size - 1` are Huffman-encoded with one shared code table, all
    larger symbols are replaced by the escape symbol `dict_size - 1` and
    stored separately as varints. The symbols are encoded in independently
    decodable blocks of `block_size` symbols.

    Parameters
    ----------
    dict_size : int
        The number of symbols in the code table, including the escape symbol.
    block_size : int
        The number of symbols per block.
    """

    __slots__ = ("_dict_size", "_block_size")
    _dict_size: int
    _block_size: int

    codec_id: str = "verification.lossless.huffman"  # type: ignore

    def __init__(self, *, dict_size: int = 8192, block_size: int = 1024 * 30):
        assert dict_size >= 2, "dict_size must be at least 2"
        assert block_size > 0, "block_size must be positive"

        self._dict_size = dict_size
        self._block_size = block_size

    def encode(self, buf: Buffer) -> bytes:
        a = numcodecs.compat.ensure_ndarray(buf)
        dtype, shape = a.dtype, a.shape

        zigzag = zigzag_encode(a.flatten())
        escape = self._dict_size - 1
        outliers = zigzag >= escape
        symbols = np.where(outliers, np.uint64(escape), zigzag).tolist()

        # message: dtype shape escape block_size table blocks outliers
        message: list[bytes] = []

        _encode_header(message, dtype, shape)
        message.append(varint.encode(escape))
        message.append(varint.encode(self._block_size))

        if len(symbols) == 0:
            return b"".join(message)

        huffman = DaHuffmanCodec.from_data(symbols)

        table = huffman.get_code_table()
        table_no_eof = [(k, e) for k, e in table.items() if k != _EOF]
        message.append(varint.encode(len(table_no_eof)))
        for k, (bitsize, value) in table_no_eof:
            message.append(varint.encode(k))
            message.append(varint.encode(bitsize))
            message.append(varint.encode(value))
        bitsize, value = table[_EOF]
        message.append(varint.encode(bitsize))
        message.append(varint.encode(value))

        for start in range(0, len(symbols), self._block_size):
            block = huffman.encode(symbols[start : start + self._block_size])
            message.append(varint.encode(len(block)))
            message.append(block)

        outlier_values = zigzag[outliers].tolist()
        message.append(varint.encode(len(outlier_values)))
        for v in outlier_values:
            message.append(varint.encode(v))

        return b"".join(message)

    def decode(self, buf: Buffer, out: None | Buffer = None) -> Buffer:
        b = numcodecs.compat.ensure_bytes(buf)

        b_io = BytesIO(b)

        dtype, shape = _decode_header(b_io)
        size = int(np.prod(shape, dtype=np.uint64))
        escape = varint.decode_stream(b_io)
        block_size = varint.decode_stream(b_io)

        if size == 0:
            empty = np.empty(shape, dtype=dtype)
            return numcodecs.compat.ndarray_copy(empty, out)  # type: ignore

        table = dict()
        for _ in range(varint.decode_stream(b_io)):
            k = varint.decode_stream(b_io)
            table[k] = (varint.decode_stream(b_io), varint.decode_stream(b_io))
        table[_EOF] = (varint.decode_stream(b_io), varint.decode_stream(b_io))
        huffman = DaHuffmanCodec(table)

        symbols = np.empty(size, dtype=np.uint64)
        for start in range(0, size, block_size):
            block = b_io.read(varint.decode_stream(b_io))
            decoded = huffman.decode(block)
            assert len(decoded) == min(block_size, size - start), (
                "Huffman block decodes to the wrong number of symbols"
            )
            symbols[start : start + len(decoded)] = decoded

        outliers = symbols == escape
        num_outliers = varint.decode_stream(b_io)
        assert num_outliers == np.count_nonzero(outliers), (
            "wrong number of escaped symbols"
        )
        symbols[outliers] = [varint.decode_stream(b_io) for _ in range(num_outliers)]

        decoded = zigzag_decode(symbols).astype(dtype).reshape(shape)

        return numcodecs.compat.ndarray_copy(decoded, out)  # type: ignore

    def get_config(self) -> dict:
        return dict(
            id=type(self).codec_id,
            dict_size=self._dict_size,
            block_size=self._block_size,
        )


numcodecs.registry.register_codec(HuffmanCodec)


class BitPackCodec(Codec):
    """
    Fixed-width bit packing of signed integer arrays.

    The integers are zig-zag mapped and stored with the minimum number of bits
    that can represent the largest value.
    """

    __slots__ = ()

    codec_id: str = "verification.lossless.bitpack"  # type: ignore

    def encode(self, buf: Buffer) -> bytes:
        a = numcodecs.compat.ensure_ndarray(buf)
        dtype, shape = a.dtype, a.shape

        symbols = zigzag_encode(a.flatten())
        width = int(symbols.max()).bit_length() if symbols.size > 0 else 0

        # message: dtype shape width bits
        message: list[bytes] = []

        _encode_header(message, dtype, shape)
        message.append(varint.encode(width))

        if width > 0:
            bits = (symbols[:, np.newaxis] >> np.arange(width, dtype=np.uint64)) & 1
            packed = np.packbits(bits.astype(np.uint8), bitorder="little")
            message.append(packed.tobytes())

        return b"".join(message)

    def decode(self, buf: Buffer, out: None | Buffer = None) -> Buffer:
        b = numcodecs.compat.ensure_bytes(buf)

        b_io = BytesIO(b)

        dtype, shape = _decode_header(b_io)
        size = int(np.prod(shape, dtype=np.uint64))
        width = varint.decode_stream(b_io)

        if width == 0:
            symbols = np.zeros(size, dtype=np.uint64)
        else:
            bits = np.unpackbits(
                np.frombuffer(b_io.read(), dtype=np.uint8),
                count=size * width,
                bitorder="little",
            ).reshape(size, width)
            symbols = np.bitwise_or.reduce(
                bits.astype(np.uint64) << np.arange(width, dtype=np.uint64), axis=1
            )

        decoded = zigzag_decode(symbols).astype(dtype).reshape(shape)

        return numcodecs.compat.ndarray_copy(decoded, out)  # type: ignore


numcodecs.registry.register_codec(BitPackCodec)


class EntropyCodec(Codec):
    """
    Encodes with both the Huffman and the bit packing codec and keeps the
    shorter encoding.
    """

    __slots__ = ("_huffman", "_bitpack")
    _huffman: HuffmanCodec
    _bitpack: BitPackCodec

    codec_id: str = "verification.lossless.entropy"  # type: ignore

    def __init__(self, *, dict_size: int = 8192, block_size: int = 1024 * 30):
        self._huffman = HuffmanCodec(dict_size=dict_size, block_size=block_size)
        self._bitpack = BitPackCodec()

    def encode(self, buf: Buffer) -> bytes:
        encoded_huffman: bytes = self._huffman.encode(buf)
        encoded_bitpack: bytes = self._bitpack.encode(buf)

        if len(encoded_huffman) < len(encoded_bitpack):
            return bytes([1]) + encoded_huffman

        return bytes([0]) + encoded_bitpack

    def decode(self, buf: Buffer, out: None | Buffer = None) -> Buffer:
        b = numcodecs.compat.ensure_bytes(buf)

        marker, b = b[0], b[1:]

        if marker == 1:
            return self._huffman.decode(b, out=out)

        assert marker == 0, f"unknown entropy encoding marker {marker}"
        return self._bitpack.decode(b, out=out)

    def get_config(self) -> dict:
        return dict(
            id=type(self).codec_id,
            dict_size=self._huffman._dict_size,
            block_size=self._huffman._block_size,
        )


numcodecs.registry.register_codec(EntropyCodec)


class BlockLZ4Codec(Codec):
    """
    LZ4 compression of a byte string in independent blocks of `block_size`
    bytes.
    """

    __slots__ = ("_block_size", "_lz4")
    _block_size: int
    _lz4: Codec

    codec_id: str = "verification.lossless.block_lz4"  # type: ignore

    def __init__(self, *, block_size: int = 1 << 15):
        assert block_size > 0, "block_size must be positive"

        self._block_size = block_size
        self._lz4 = numcodecs.LZ4()

    def encode(self, buf: Buffer) -> bytes:
        b = numcodecs.compat.ensure_bytes(buf)

        # message: length block_size [block_len block]*
        message = [varint.encode(len(b)), varint.encode(self._block_size)]

        for start in range(0, len(b), self._block_size):
            block = numcodecs.compat.ensure_bytes(
                self._lz4.encode(b[start : start + self._block_size])
            )
            message.append(varint.encode(len(block)))
            message.append(block)

        return b"".join(message)

    def decode(self, buf: Buffer, out: None | Buffer = None) -> Buffer:
        b = numcodecs.compat.ensure_bytes(buf)

        b_io = BytesIO(b)

        size = varint.decode_stream(b_io)
        block_size = varint.decode_stream(b_io)

        blocks = []
        for _ in range(0, size, block_size):
            block = b_io.read(varint.decode_stream(b_io))
            blocks.append(numcodecs.compat.ensure_bytes(self._lz4.decode(block)))

        decoded = b"".join(blocks)
        assert len(decoded) == size, "LZ4 blocks decode to the wrong length"

        if out is None:
            return decoded

        decoded_array = np.frombuffer(decoded, dtype=np.uint8)
        return numcodecs.compat.ndarray_copy(decoded_array, out)  # type: ignore

    def get_config(self) -> dict:
        return dict(id=type(self).codec_id, block_size=self._block_size)


numcodecs.registry.register_codec(BlockLZ4Codec)


@dataclass(frozen=True)
class Lossless:
    """
    The lossless encoding that the reference backends apply to their
    quantized data.

    Parameters
    ----------
    entropy : Codec
        The codec that encodes the integer quantization codes.
    secondary : None | Codec
        An optional codec that further compresses the entropy-coded bytes.
    """

    entropy: Codec
    secondary: None | Codec = None

    @classmethod
    def for_config(cls, config: BackendConfig) -> "Lossless":
        return cls(
            entropy=EntropyCodec(
                dict_size=config.huffman_dict_size,
                block_size=config.huffman_block_size,
            ),
            secondary=BlockLZ4Codec(block_size=config.lz4_block_size)
            if config.enable_lz4
            else None,
        )

    def encode(self, codes: np.ndarray) -> bytes:
        encoded = numcodecs.compat.ensure_bytes(self.entropy.encode(codes))

        if self.secondary is not None:
            encoded = numcodecs.compat.ensure_bytes(self.secondary.encode(encoded))

        return encoded

    def decode(self, encoded: bytes) -> np.ndarray:
        if self.secondary is not None:
            encoded = numcodecs.compat.ensure_bytes(self.secondary.decode(encoded))

        return numcodecs.compat.ensure_ndarray(self.entropy.decode(encoded))
