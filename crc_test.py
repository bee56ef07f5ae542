#!/usr/bin/env python3
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
"""Tests the CRC-16/X-25 frame check sequence."""

import unittest

from meshnet_hdlc import crc
from meshnet_hdlc.protocol import frame_check_sequence as fcs


def _bitwise_crc(data: bytes) -> int:
    value = crc.INITIAL_VALUE
    for byte in data:
        value ^= byte
        for _ in range(8):
            value = (value >> 1) ^ crc.POLYNOMIAL if value & 1 else value >> 1
    return value


class CrcTableTest(unittest.TestCase):
    """Tests the lookup table against well-known entries."""

    def test_size(self):
        self.assertEqual(len(crc.TABLE), 256)

    def test_known_entries(self):
        self.assertEqual(crc.TABLE[0x00], 0x0000)
        self.assertEqual(crc.TABLE[0x01], 0x1189)
        self.assertEqual(crc.TABLE[0x08], 0x8C48)
        self.assertEqual(crc.TABLE[0x80], 0x8408)
        self.assertEqual(crc.TABLE[0xFF], 0x0F78)

    def test_entries_are_16_bit(self):
        self.assertTrue(all(0 <= entry <= 0xFFFF for entry in crc.TABLE))

    def test_immutable(self):
        with self.assertRaises(TypeError):
            crc.TABLE[0] = 1  # type: ignore[index]


class CrcUpdateTest(unittest.TestCase):
    """Tests folding bytes into a running CRC."""

    def test_update_keeps_all_16_bits(self):
        self.assertEqual(crc.update(crc.INITIAL_VALUE, 0x00), 0x0F87)

    def test_calculate_empty(self):
        self.assertEqual(crc.calculate(b''), crc.INITIAL_VALUE)

    def test_calculate_check_value(self):
        self.assertEqual(crc.calculate(b'123456789') ^ 0xFFFF, 0x906E)

    def test_calculate_continues_from_crc(self):
        self.assertEqual(
            crc.calculate(b'6789', crc.calculate(b'12345')),
            crc.calculate(b'123456789'),
        )

    def test_matches_bitwise_implementation(self):
        for data in (b'\0', b'A', b'Hello, world!', bytes(range(256))):
            self.assertEqual(crc.calculate(data), _bitwise_crc(data), data)


class FrameCheckSequenceTest(unittest.TestCase):
    """Tests the transmitted FCS bytes."""

    def test_empty(self):
        self.assertEqual(fcs(b''), b'\x00\x00')

    def test_zero_byte(self):
        self.assertEqual(fcs(b'\x00'), b'\x78\xf0')

    def test_rfc_1662_check_string(self):
        self.assertEqual(fcs(b'123456789'), b'\x6e\x90')

    def test_residue(self):
        for data in (b'', b'\x00', b'123456789', bytes(range(60))):
            self.assertEqual(
                crc.calculate(data + fcs(data)), crc.GOOD_RESIDUE, data
            )

    def test_corrupt_fcs_does_not_reach_residue(self):
        data = b'123456789'
        self.assertNotEqual(crc.calculate(data + b'\x6e\x91'), crc.GOOD_RESIDUE)


if __name__ == '__main__':
    unittest.main()
