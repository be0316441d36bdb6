"""
Protocol Buffers wire format primitives.

Only what the CRX3 header schema needs: varints and length-delimited fields
on the write side, and a field iterator that can skip every standard wire
type on the read side.
"""

from typing import Iterator, Tuple, Union

from .types import EncodingError

# Wire types
WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5

MAX_FIELD_NUMBER = (1 << 29) - 1
MAX_VARINT_BYTES = 10


class WireFormatError(EncodingError):
    """Raised when wire format encoding/decoding fails."""
    pass


def encode_varint(value: int) -> bytes:
    """
    Encode a non-negative integer as a base-128 varint.

    Args:
        value: Integer in [0, 2**64)

    Returns:
        Encoded bytes, least significant group first
    """
    if value < 0 or value >= 1 << 64:
        raise WireFormatError(f"Varint out of range: {value}")

    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """
    Decode a varint starting at offset.

    Returns:
        Tuple of (value, offset after the varint)

    Raises:
        WireFormatError: If the varint is truncated or longer than 10 bytes
    """
    result = 0
    shift = 0
    for i in range(MAX_VARINT_BYTES):
        if offset >= len(data):
            raise WireFormatError("Truncated varint")
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, offset
        shift += 7
    raise WireFormatError("Varint too long")


def encode_tag(field_number: int, wire_type: int) -> bytes:
    """Encode a field key (field number and wire type)."""
    if not 1 <= field_number <= MAX_FIELD_NUMBER:
        raise WireFormatError(f"Invalid field number: {field_number}")
    return encode_varint((field_number << 3) | wire_type)


def encode_length_delimited(field_number: int, value: bytes) -> bytes:
    """Encode a bytes/string/message field."""
    return encode_tag(field_number, WIRE_LENGTH_DELIMITED) + encode_varint(len(value)) + bytes(value)


def iter_fields(data: bytes) -> Iterator[Tuple[int, int, Union[int, bytes]]]:
    """
    Iterate over the fields of a serialized message.

    Varint fields yield an int; length-delimited and fixed-width fields
    yield their raw bytes.

    Yields:
        Tuples of (field_number, wire_type, value)

    Raises:
        WireFormatError: On truncated data, unknown wire types or field number 0
    """
    offset = 0
    while offset < len(data):
        key, offset = decode_varint(data, offset)
        field_number = key >> 3
        wire_type = key & 0x07

        if field_number == 0:
            raise WireFormatError("Invalid field number: 0")

        if wire_type == WIRE_VARINT:
            value, offset = decode_varint(data, offset)
            yield field_number, wire_type, value
            continue

        if wire_type == WIRE_LENGTH_DELIMITED:
            length, offset = decode_varint(data, offset)
        elif wire_type == WIRE_FIXED64:
            length = 8
        elif wire_type == WIRE_FIXED32:
            length = 4
        else:
            raise WireFormatError(f"Unsupported wire type: {wire_type}")

        end = offset + length
        if end > len(data):
            raise WireFormatError(
                f"Field {field_number} truncated: need {length} bytes, have {len(data) - offset}"
            )
        yield field_number, wire_type, data[offset:end]
        offset = end
