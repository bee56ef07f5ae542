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
"""Encoder functions for encoding bytes using HDLC protocol"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from meshnet_hdlc import crc
from meshnet_hdlc import protocol
from meshnet_hdlc.transport import ByteTransport

_LOG = logging.getLogger(__name__)
_VERBOSE = logging.DEBUG - 1


def _escape(byte: int) -> Iterator[int]:
    if protocol.needs_escaping(byte):
        yield protocol.ESCAPE
        yield protocol.escape(byte)
    else:
        yield byte


def frame_bytes(payload: Iterable[int]) -> Iterator[int]:
    """Yields the encoded frame for payload one byte at a time, in wire order.

    The FCS is accumulated as the payload is consumed, so nothing is buffered.
    """
    yield protocol.FLAG

    fcs = crc.INITIAL_VALUE
    for byte in payload:
        fcs = crc.update(fcs, byte)
        yield from _escape(byte)

    fcs ^= 0xFFFF
    yield from _escape(fcs & 0xFF)
    yield from _escape(fcs >> 8)

    yield protocol.FLAG


def frame(payload: bytes) -> bytes:
    """Returns the complete HDLC encoding of payload, flags included."""
    return bytes(frame_bytes(payload))


class FrameTransmitter:
    """Writes HDLC-encoded frames to a byte transport.

    The transmitter keeps no state between frames. It must not be shared by
    concurrent senders: interleaved writes corrupt both frames.
    """

    def __init__(self, transport: ByteTransport):
        self._transport = transport

    def send_frame(self, payload: bytes) -> None:
        """Encodes payload and writes it to the transport byte by byte.

        Raises:
            TransportError: A write failed. The rest of the frame is not sent;
                the receiver discards the truncated frame. Retrying means
                sending the whole frame again.
        """
        written = 0
        try:
            for byte in frame_bytes(payload):
                self._transport.transmit_byte(byte)
                written += 1
        except OSError as exc:
            _LOG.debug(
                'Transport write failed after %d bytes of frame', written
            )
            if isinstance(exc, protocol.TransportError):
                raise
            raise protocol.TransportError(
                f'Failed to send {len(payload)} B frame: {exc}'
            ) from exc

        _LOG.log(
            _VERBOSE,
            'Wrote %2d B frame (%d B encoded)',
            len(payload),
            written,
        )
