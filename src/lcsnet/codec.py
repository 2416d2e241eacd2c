"""
Binary Codec Module

Fixed-width little-endian primitives shared by the layer and network
save/load methods. Integers are int32, floats are float64 and arrays are
written as raw blocks of either. Every writer returns the number of bytes
written; readers raise ValueError on a short read.

Functions:
    write_int, read_int:       int32 scalar
    write_float, read_float:   float64 scalar
    write_array, read_array:   float64 array (length implied by the caller)
    write_ints, read_ints:     int32 array (length implied by the caller)
"""

import numpy as np
import struct
from typing import BinaryIO

INT_SIZE   = 4
FLOAT_SIZE = 8

_INT   = struct.Struct('<i')
_FLOAT = struct.Struct('<d')

def _read_exact(source: BinaryIO, n: int) -> bytes:
    data = source.read(n)
    if len(data) != n:
        raise ValueError(f"truncated stream: expected {n} bytes, got {len(data)}")
    return data

def write_int(sink: BinaryIO, value: int) -> int:
    return sink.write(_INT.pack(int(value)))

def read_int(source: BinaryIO) -> int:
    return _INT.unpack(_read_exact(source, INT_SIZE))[0]

def write_float(sink: BinaryIO, value: float) -> int:
    return sink.write(_FLOAT.pack(float(value)))

def read_float(source: BinaryIO) -> float:
    return _FLOAT.unpack(_read_exact(source, FLOAT_SIZE))[0]

def write_array(sink: BinaryIO, values: np.ndarray) -> int:
    return sink.write(np.ascontiguousarray(values, dtype='<f8').tobytes())

def read_array(source: BinaryIO, n: int) -> np.ndarray:
    if n < 0:
        raise ValueError(f"corrupt stream: negative array length {n}")
    data = _read_exact(source, n * FLOAT_SIZE)
    return np.frombuffer(data, dtype='<f8').astype(np.float64)

def write_ints(sink: BinaryIO, values: np.ndarray) -> int:
    return sink.write(np.ascontiguousarray(values, dtype='<i4').tobytes())

def read_ints(source: BinaryIO, n: int) -> np.ndarray:
    if n < 0:
        raise ValueError(f"corrupt stream: negative array length {n}")
    data = _read_exact(source, n * INT_SIZE)
    return np.frombuffer(data, dtype='<i4').astype(np.int64)
