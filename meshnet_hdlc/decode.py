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
"""Decoder class for decoding bytes using HDLC protocol"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Iterator

from meshnet_hdlc import crc
from meshnet_hdlc import protocol

_LOG = logging.getLogger(__name__)

FrameHandler = Callable[[bytes], Any]


class FrameStatus(enum.Enum):
    """Reasons a delimited run of bytes is not passed on as a frame."""

    OK = 'OK'
    FCS_MISMATCH = 'frame check sequence failure'
    TOO_SHORT = 'frame shorter than the minimum frame size'
    ABORTED = 'escape character followed by flag'


class FrameDecoder:
    """Decodes HDLC frames from a stream of bytes, one byte at a time.

    Runs are dropped without any signal when the FCS does not check out, when
    fewer than ``MIN_FRAME_SIZE`` bytes were decoded, or when the frame
    overflowed the receive buffer. Validated frames, with the FCS removed, are
    passed to ``on_frame`` and returned from :py:meth:`on_byte`.
    """

    def __init__(
        self,
        on_frame: FrameHandler | None = None,
        mru: int = protocol.DEFAULT_MRU,
    ):
        """
        Args:
            on_frame: Called synchronously with each validated frame.
            mru: Maximum receive unit; the most decoded bytes, FCS included,
                buffered for one frame.
        """
        if mru < protocol.MIN_FRAME_SIZE:
            raise ValueError(
                f'MRU must be at least {protocol.MIN_FRAME_SIZE} bytes, '
                f'got {mru}'
            )

        self._on_frame = on_frame
        self._mru = mru
        self._buffer = bytearray(mru)
        self._length = 0
        self._crc = crc.INITIAL_VALUE
        self._escape_pending = False

    @property
    def mru(self) -> int:
        return self._mru

    def process(self, data: bytes) -> Iterator[bytes]:
        """Decodes a chunk of bytes and yields each validated frame."""
        for byte in data:
            frame = self.on_byte(byte)
            if frame is not None:
                yield frame

    def on_byte(self, byte: int) -> bytes | None:
        """Consumes one received byte.

        Returns:
            The frame completed by this byte, or None.
        """
        if byte == protocol.FLAG:
            return self._finish_frame()

        if self._escape_pending:
            self._escape_pending = False
            byte = protocol.escape(byte)
        elif byte == protocol.ESCAPE:
            self._escape_pending = True
            return None

        self._buffer[self._length] = byte
        self._crc = crc.update(self._crc, byte)
        self._length += 1

        if self._length == self._mru:
            _LOG.debug(
                'Receive buffer overflow after %d bytes; discarding frame',
                self._mru,
            )
            self._length = 0
            self._crc ^= 0xFFFF

        return None

    def _check_frame(self) -> FrameStatus:
        if self._escape_pending:
            return FrameStatus.ABORTED

        if self._length < protocol.MIN_FRAME_SIZE:
            return FrameStatus.TOO_SHORT

        if self._crc != crc.GOOD_RESIDUE:
            return FrameStatus.FCS_MISMATCH

        return FrameStatus.OK

    def _finish_frame(self) -> bytes | None:
        status = self._check_frame()
        frame: bytes | None = None

        if status is FrameStatus.OK:
            frame = bytes(self._buffer[: self._length - protocol.FCS_SIZE])
        elif self._length or self._escape_pending:
            _LOG.debug(
                'Discarded frame: %s; %d bytes decoded',
                status.value,
                self._length,
            )

        self._length = 0
        self._crc = crc.INITIAL_VALUE
        self._escape_pending = False

        if frame is not None and self._on_frame is not None:
            self._on_frame(frame)

        return frame
