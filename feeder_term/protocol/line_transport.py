"""
Thread-safe serial transport for the line-oriented feeder protocol.

Incoming bytes are split into text lines; M620 lines are decoded into
FeederSettings and emitted alongside the raw line.
"""

import time
import logging
import threading

import serial
import serial.tools.list_ports
from PyQt6.QtCore import QObject, pyqtSignal

from ..config import TransportConfig
from .feeder_settings import (
    DecodeError, FeederSettings,
    decode, encode, is_settings_line, build_get_all_settings,
)

log = logging.getLogger(__name__)


def list_serial_ports() -> list:
    return [p.device for p in serial.tools.list_ports.comports()]


class LineAssembler:
    """Accumulates incoming bytes and yields complete text lines."""

    def __init__(self):
        self._text_buffer = ""

    def feed(self, data: bytes) -> list:
        """Feed raw bytes. Returns complete lines (without terminator); keeps partial line."""
        self._text_buffer += data.decode("utf-8", errors="ignore")
        lines = []
        while "\n" in self._text_buffer:
            line, self._text_buffer = self._text_buffer.split("\n", 1)
            lines.append(line.rstrip("\r"))
        return lines

    def flush_text(self) -> str:
        """Flush any remaining text (even without newline)."""
        text = self._text_buffer
        self._text_buffer = ""
        return text


class SerialLineTransport(QObject):
    """
    Serial I/O with thread-safe writes and a background line reader.
    Emits Qt signals for every text line and for each decoded settings line.
    """

    line_received = pyqtSignal(str)              # every received line
    settings_received = pyqtSignal(int, object)  # feeder index, FeederSettings
    decode_failed = pyqtSignal(str, str)         # line, reason
    connection_lost = pyqtSignal(str)            # error reason
    connected = pyqtSignal()
    disconnected = pyqtSignal()
    # Debug signals for raw UART data
    debug_tx = pyqtSignal(bytes)
    debug_rx = pyqtSignal(bytes)

    def __init__(self):
        super().__init__()
        self._ser: serial.Serial | None = None
        self._lock = threading.Lock()
        self._assembler = LineAssembler()
        self._reader_thread: threading.Thread | None = None
        self._running = False
        # [rx, tx] byte totals since the last take_byte_counts()
        self._counts = [0, 0]
        self._counts_lock = threading.Lock()

    def _open_port(self) -> serial.Serial | None:
        ser = self._ser
        return ser if ser is not None and ser.is_open else None

    @property
    def port_name(self) -> str:
        ser = self._open_port()
        return ser.port if ser else ""

    @property
    def baudrate(self) -> int:
        ser = self._open_port()
        return ser.baudrate if ser else 0

    def is_connected(self) -> bool:
        return self._open_port() is not None

    def _count(self, rx: int = 0, tx: int = 0) -> None:
        with self._counts_lock:
            self._counts[0] += rx
            self._counts[1] += tx

    def take_byte_counts(self) -> tuple[int, int]:
        """(rx_bytes, tx_bytes) since the previous call."""
        with self._counts_lock:
            rx, tx = self._counts
            self._counts = [0, 0]
        return rx, tx

    def connect(self, port: str, baud: int, timeout_s: float = 0.1) -> None:
        """Open the port and start the line reader."""
        self.disconnect()
        self._ser = serial.Serial(port, baud, timeout=timeout_s)
        self._assembler = LineAssembler()
        self.take_byte_counts()
        self._running = True
        self._reader_thread = threading.Thread(
            target=self._reader_loop, daemon=True, name="FeederLineReader"
        )
        self._reader_thread.start()
        log.info("connected to %s @ %d", port, baud)
        self.connected.emit()

    def connect_from_config(self, cfg: TransportConfig) -> None:
        if not cfg.port:
            raise ValueError("no serial port configured (set FEEDER_PORT)")
        self.connect(cfg.port, cfg.baudrate, cfg.timeout_s)

    def disconnect(self) -> None:
        """Stop the reader, then close the port."""
        self._running = False
        reader, self._reader_thread = self._reader_thread, None
        if reader is not None and reader.is_alive():
            reader.join(timeout=1.0)

        with self._lock:
            ser, self._ser = self._ser, None
            if ser is not None:
                try:
                    ser.close()
                except serial.SerialException as e:
                    log.warning("error closing %s: %s", ser.port, e)
        self.disconnected.emit()

    def send_line(self, text: str) -> None:
        """Send one command line (newline appended). Thread-safe, no-op when closed."""
        data = (text + "\n").encode("ascii")
        with self._lock:
            ser = self._open_port()
            if ser is None:
                return
            ser.write(data)
            ser.flush()
        self._count(tx=len(data))
        self.debug_tx.emit(data)

    def send_settings(self, index: int, settings: FeederSettings | None,
                      skip_zero: bool = False) -> None:
        """Encode and send an M620 line. Nothing is sent when settings is None."""
        line = encode(index, settings, skip_zero=skip_zero)
        if line:
            self.send_line(line)

    def request_all_settings(self) -> None:
        self.send_line(build_get_all_settings())

    def _handle_line(self, line: str) -> None:
        self.line_received.emit(line)
        if not is_settings_line(line):
            return
        try:
            index, settings = decode(line)
        except DecodeError as e:
            log.warning("bad settings line %r: %s", line, e)
            self.decode_failed.emit(line, str(e))
            return
        self.settings_received.emit(index, settings)

    def _reader_loop(self):
        """Background thread: read bytes, split lines, decode settings."""
        while self._running:
            try:
                if not self._ser or not self._ser.is_open:
                    time.sleep(0.05)
                    continue

                n = self._ser.in_waiting
                if n:
                    raw = self._ser.read(n)
                    self._count(rx=len(raw))
                    self.debug_rx.emit(raw)
                    for line in self._assembler.feed(raw):
                        self._handle_line(line)

                time.sleep(0.002)

            except (serial.SerialException, OSError) as e:
                self._running = False
                log.error("serial reader stopped: %s", e)
                self.connection_lost.emit(str(e))
                return
