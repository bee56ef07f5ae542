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
"""Byte transports and background readers for serial links."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import threading
from typing import Any, Callable
import warnings

import serial

from meshnet_hdlc.protocol import TransportError

_LOG = logging.getLogger(__name__)
_VERBOSE = logging.DEBUG - 1


class ByteTransport(ABC):
    """Accepts outbound bytes one at a time."""

    @abstractmethod
    def transmit_byte(self, value: int) -> None:
        """Writes a single byte; may block.

        Raises:
            OSError: The byte could not be written.
        """


class SerialTransport(ByteTransport):
    """Writes bytes to a :py:class:`serial.Serial` port."""

    def __init__(self, port: serial.Serial):
        self._port = port

    @property
    def port(self) -> serial.Serial:
        return self._port

    def transmit_byte(self, value: int) -> None:
        try:
            self._port.write(bytes([value]))
        except serial.SerialException as exc:
            raise TransportError(
                f'Failed to write to {self._port.port}: {exc}'
            ) from exc

    def close(self) -> None:
        self._port.close()


class WriterTransport(ByteTransport):
    """Adapts a function that writes bytes, such as ``socket.sendall``."""

    def __init__(self, write: Callable[[bytes], Any]):
        self._write = write

    def transmit_byte(self, value: int) -> None:
        self._write(bytes([value]))


class CancellableReader(ABC):
    """Wraps communication interfaces used for reading incoming data with the
    guarantee that the read request can be cancelled. Derived classes must
    implement the :py:func:`cancel_read()` method.

    Cancelling a read invalidates ongoing and future reads. The
    :py:func:`cancel_read()` method can only be called once.
    """

    def __init__(self, base_obj: Any, *read_args, **read_kwargs):
        """
        Args:
            base_obj: Object that offers a ``read()`` method with optional args
                and kwargs.
            read_args: Arguments for ``base_obj.read()`` function.
            read_kwargs: Keyword arguments for ``base_obj.read()`` function.
        """
        self._base_obj = base_obj
        self._read_args = read_args
        self._read_kwargs = read_kwargs

    def __enter__(self) -> CancellableReader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel_read()

    def read(self) -> bytes:
        """Reads a chunk of received bytes; may return an empty chunk."""
        return self._base_obj.read(*self._read_args, **self._read_kwargs)

    @abstractmethod
    def cancel_read(self) -> None:
        """Cancels a blocking read request and all future reads.

        Can only be called once.
        """


class SerialReader(CancellableReader):
    """Wraps a :py:class:`serial.Serial` object.

    By default each read returns whatever is waiting in the port's input
    buffer, or blocks for a single byte when it is empty.
    """

    def __init__(self, base_obj: serial.Serial, *read_args, **read_kwargs):
        super().__init__(base_obj, *read_args, **read_kwargs)

    def read(self) -> bytes:
        if self._read_args or self._read_kwargs:
            return super().read()
        return self._base_obj.read(max(1, self._base_obj.in_waiting))

    def cancel_read(self) -> None:
        self._base_obj.cancel_read()

    def __exit__(self, *exc_info) -> None:
        self.cancel_read()
        self._base_obj.close()


def _log_read_error(exc: Exception) -> None:
    _LOG.error('Byte reader encountered an error', exc_info=exc)


class ByteReader:
    """Reads incoming bytes in a background thread.

    Every chunk read is passed to ``data_processor`` on the reader thread, in
    the order it was read. Reading stops when :py:meth:`stop` is called or when
    a read raises.
    """

    def __init__(
        self,
        reader: CancellableReader,
        data_processor: Callable[[bytes], Any],
        on_read_error: Callable[[Exception], None] = _log_read_error,
    ):
        """Creates the byte reader.

        Args:
            reader: Reads incoming bytes from the given transport, blocks until
              data is available or an exception is raised. Otherwise the reader
              will exit.
            data_processor: Handles each chunk of read bytes.
            on_read_error: Called when there is an error reading incoming bytes.
        """
        self._reader = reader
        self._data_processor = data_processor
        self._on_read_error = on_read_error

        self._reader_thread = threading.Thread(target=self._run, daemon=True)
        self._reader_thread_stop = threading.Event()

    def is_alive(self) -> bool:
        return self._reader_thread.is_alive()

    def start(self) -> None:
        """Starts the reading process."""
        _LOG.debug('Starting read process')
        self._reader_thread_stop.clear()
        self._reader_thread.start()

    def stop(self) -> None:
        """Stops the reading process.

        This requests that the reading process stop and waits
        for the background thread to exit.
        """
        _LOG.debug('Stopping read process')
        self._reader_thread_stop.set()
        self._reader.cancel_read()
        if not self._reader_thread.is_alive():
            return

        self._reader_thread.join(30)
        if self._reader_thread.is_alive():
            warnings.warn(
                'Timed out waiting for read thread to terminate.\n'
                'Tip: Use a `CancellableReader` to cancel reads.'
            )

    def _run(self) -> None:
        """Reads raw data in a background thread."""
        while not self._reader_thread_stop.is_set():
            try:
                data = self._reader.read()
            except Exception as exc:  # pylint: disable=broad-except
                # Don't report the read error if the thread is stopping.
                # The stream or device backing _read was likely closed,
                # so errors are expected.
                if not self._reader_thread_stop.is_set():
                    self._on_read_error(exc)
                _LOG.debug(
                    'ByteReader thread exiting due to exception',
                    exc_info=exc,
                )
                return

            if not data:
                continue

            _LOG.log(_VERBOSE, 'Read %2d B: %s', len(data), data)
            self._data_processor(data)
