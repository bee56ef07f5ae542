# Copyright 2024 The Pigweed Authors
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy of
# the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations under
# the License.
"""CRC-16/X-25 (reflected CRC16-CCITT) used for the HDLC frame check sequence.

The lookup table is built once at import time and never modified, so it may be
shared freely between threads.
"""

from typing import Iterable

# Reversed representation of the CCITT polynomial x^16 + x^12 + x^5 + 1.
POLYNOMIAL = 0x8408

INITIAL_VALUE = 0xFFFF

# Result of folding a payload followed by its complemented, little-endian FCS.
GOOD_RESIDUE = 0xF0B8


def _table_entry(index: int) -> int:
    crc = index
    for _ in range(8):
        if crc & 1:
            crc = (crc >> 1) ^ POLYNOMIAL
        else:
            crc >>= 1
    return crc


TABLE: tuple[int, ...] = tuple(_table_entry(i) for i in range(256))


def update(crc: int, byte: int) -> int:
    """Folds one byte into a running CRC and returns the new 16-bit value."""
    return (crc >> 8) ^ TABLE[(crc ^ byte) & 0xFF]


def calculate(data: Iterable[int], crc: int = INITIAL_VALUE) -> int:
    """Folds every byte of data into crc, which defaults to the seed value."""
    for byte in data:
        crc = update(crc, byte)
    return crc
