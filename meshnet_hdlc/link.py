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
"""Serial link layer: HDLC framing between a byte transport and a frame
consumer.

A :py:class:`SerialLink` owns the receive state for one connection and is the
only writer to its transport. Received bytes are decoded on the thread that
delivers them, and validated frames are passed to the consumer on that same
thread.

.. code-block:: python

  def on_frame(frame: bytes) -> None:
      print(frame.hex())

  with SerialLink.open('/dev/ttyUSB0', on_frame) as link:
      link.send_frame(b'...')
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import serial

from meshnet_hdlc import protocol
from meshnet_hdlc.decode import FrameDecoder, FrameHandler
from meshnet_hdlc.encode import FrameTransmitter
from meshnet_hdlc.transport import (
    ByteReader,
    ByteTransport,
    CancellableReader,
    SerialReader,
    SerialTransport,
)

_LOG = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200


class SerialLink:
    """Frames outbound payloads and deframes inbound bytes for one link."""

    def __init__(
        self,
        transport: ByteTransport,
        on_frame: FrameHandler,
        mru: int = protocol.DEFAULT_MRU,
        reader: CancellableReader | None = None,
    ):
        """
        Args:
            transport: Where encoded frames are written.
            on_frame: Called once for each validated inbound frame.
            mru: Maximum receive unit of the inbound decoder.
            reader: Optional source of inbound bytes. When given,
                :py:meth:`start` reads from it in a background thread.
        """
        self._on_frame = on_frame
        self._decoder = FrameDecoder(self._handle_frame, mru)
        self._transmitter = FrameTransmitter(transport)
        self._transport = transport
        self._send_lock = threading.Lock()
        self._byte_reader: ByteReader | None = None

        if reader is not None:
            self._byte_reader = ByteReader(reader, self.process)

    @classmethod
    def open(
        cls,
        port: str,
        on_frame: FrameHandler,
        baudrate: int = DEFAULT_BAUDRATE,
        mru: int = protocol.DEFAULT_MRU,
        **serial_kwargs: Any,
    ) -> SerialLink:
        """Opens a serial port and returns a link reading from it.

        The link is started; leaving its context or calling
        :py:meth:`close` stops reading and closes the port.
        """
        device = serial.Serial(port, baudrate, **serial_kwargs)
        _LOG.debug('Opened %s at %d baud', port, baudrate)
        link = cls(SerialTransport(device), on_frame, mru, SerialReader(device))
        link.start()
        return link

    @property
    def mru(self) -> int:
        return self._decoder.mru

    def on_byte(self, byte: int) -> None:
        """Decodes one received byte; calls must not overlap."""
        self._decoder.on_byte(byte)

    def process(self, data: bytes) -> None:
        """Decodes a chunk of received bytes."""
        for byte in data:
            self._decoder.on_byte(byte)

    def send_frame(self, payload: bytes) -> None:
        """Encodes and writes one frame.

        Sends from multiple threads are serialized so that frames are never
        interleaved on the wire.

        Raises:
            TransportError: The transport failed partway through the frame.
        """
        with self._send_lock:
            self._transmitter.send_frame(payload)

    def start(self) -> None:
        if self._byte_reader is None:
            raise ValueError('SerialLink was created without a reader')
        self._byte_reader.start()

    def close(self) -> None:
        """Stops the background reader, if any, and closes the transport."""
        if self._byte_reader is not None:
            self._byte_reader.stop()

        if isinstance(self._transport, SerialTransport):
            self._transport.close()

    def __enter__(self) -> SerialLink:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _handle_frame(self, frame: bytes) -> None:
        # Suppress raising any consumer errors to avoid losing the receive
        # state of the bytes that follow.
        try:
            self._on_frame(frame)
        except Exception:  # pylint: disable=broad-except
            _LOG.exception('Exception in frame handler')
