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
"""Module for low-level HDLC protocol features."""

from meshnet_hdlc import crc

# Special flag character for delimiting HDLC frames.
FLAG = 0x7E

# Special character for escaping other special characters in a frame.
ESCAPE = 0x7D

# Default maximum receive unit, including the two FCS bytes.
DEFAULT_MRU = 64

# Shortest decoded frame, FCS included, that is passed up to the consumer.
MIN_FRAME_SIZE = 16

FCS_SIZE = 2


class HdlcError(Exception):
    """Base class for errors raised by meshnet_hdlc."""


class TransportError(HdlcError, OSError):
    """Writing to the byte transport failed; the frame was not sent."""


def escape(byte: int) -> int:
    """Escapes or unescapes a byte, which should have been preceeded by 0x7d."""
    return byte ^ 0x20


def needs_escaping(byte: int) -> bool:
    return byte in (FLAG, ESCAPE)


def frame_check_sequence(data: bytes) -> bytes:
    """Returns the FCS bytes transmitted after data, low byte first."""
    fcs = crc.calculate(data) ^ 0xFFFF
    return fcs.to_bytes(FCS_SIZE, 'little')
