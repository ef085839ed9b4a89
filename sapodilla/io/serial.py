import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, cast

try:
  import serial

  HAS_SERIAL = True
except ImportError:
  HAS_SERIAL = False

from sapodilla.io.io import LOG_LEVEL_IO, IOBase

logger = logging.getLogger(__name__)


class Serial(IOBase):
  """Thin wrapper around serial.Serial that runs blocking calls on a single worker thread.

  On Linux the printer's RFCOMM channel is bound to a tty (`rfcomm bind`), on Windows and macOS it
  shows up as an outgoing Bluetooth COM port. Either way pyserial sees an ordinary serial port.
  """

  def __init__(
    self,
    port: str,
    baudrate: int = 9600,
    bytesize: int = 8,  # serial.EIGHTBITS
    parity: str = "N",  # serial.PARITY_NONE
    stopbits: int = 1,  # serial.STOPBITS_ONE,
    write_timeout: Optional[float] = 1,
    timeout: Optional[float] = 0.1,
  ):
    self._port = port
    self.baudrate = baudrate
    self.bytesize = bytesize
    self.parity = parity
    self.stopbits = stopbits
    self.write_timeout = write_timeout
    self.timeout = timeout
    self._ser: Optional["serial.Serial"] = None
    self._executor: Optional[ThreadPoolExecutor] = None

  @property
  def port(self) -> str:
    return self._port

  @property
  def is_open(self) -> bool:
    return self._ser is not None and self._ser.is_open

  async def setup(self):
    if not HAS_SERIAL:
      raise RuntimeError("pyserial not installed.")
    loop = asyncio.get_running_loop()
    self._executor = ThreadPoolExecutor(max_workers=1)

    def _open_serial() -> "serial.Serial":
      return serial.Serial(
        port=self._port,
        baudrate=self.baudrate,
        bytesize=self.bytesize,
        parity=self.parity,
        stopbits=self.stopbits,
        write_timeout=self.write_timeout,
        timeout=self.timeout,
      )

    try:
      self._ser = await loop.run_in_executor(self._executor, _open_serial)
    except serial.SerialException as e:
      logger.error("Could not open %s, is the printer paired and the port free?", self._port)
      self._executor.shutdown(wait=True)
      self._executor = None
      raise e

  async def stop(self):
    if self._ser is not None and self._ser.is_open:
      loop = asyncio.get_running_loop()
      if self._executor is None:
        raise RuntimeError("Call setup() first.")
      await loop.run_in_executor(self._executor, self._ser.close)
    self._ser = None
    if self._executor is not None:
      self._executor.shutdown(wait=True)
      self._executor = None

  async def write(self, data: bytes):
    assert self._ser is not None, "forgot to call setup?"
    loop = asyncio.get_running_loop()
    if self._executor is None:
      raise RuntimeError("Call setup() first.")
    await loop.run_in_executor(self._executor, self._ser.write, data)
    logger.log(LOG_LEVEL_IO, "[%s] write %s", self._port, data.hex(" "))

  async def read(self, num_bytes: int = 1) -> bytes:
    """Read up to `num_bytes`, returning fewer if the read timeout expires first."""
    assert self._ser is not None, "forgot to call setup?"
    loop = asyncio.get_running_loop()
    if self._executor is None:
      raise RuntimeError("Call setup() first.")
    data = await loop.run_in_executor(self._executor, self._ser.read, num_bytes)
    if len(data) > 0:
      logger.log(LOG_LEVEL_IO, "[%s] read %s", self._port, data.hex(" "))
    return cast(bytes, data)

  async def read_available(self, max_bytes: int = 4096) -> bytes:
    """Block for at most one read timeout, then return whatever the port has buffered."""
    assert self._ser is not None, "forgot to call setup?"
    loop = asyncio.get_running_loop()
    if self._executor is None:
      raise RuntimeError("Call setup() first.")

    def _read_available(ser) -> bytes:
      waiting = ser.in_waiting
      return ser.read(min(max(1, waiting), max_bytes))

    data = await loop.run_in_executor(self._executor, _read_available, self._ser)
    if len(data) > 0:
      logger.log(LOG_LEVEL_IO, "[%s] read %s", self._port, data.hex(" "))
    return cast(bytes, data)

  async def reset_input_buffer(self):
    assert self._ser is not None, "forgot to call setup?"
    loop = asyncio.get_running_loop()
    if self._executor is None:
      raise RuntimeError("Call setup() first.")
    await loop.run_in_executor(self._executor, self._ser.reset_input_buffer)
    logger.log(LOG_LEVEL_IO, "[%s] reset_input_buffer", self._port)

  def serialize(self):
    return {
      "port": self._port,
      "baudrate": self.baudrate,
      "bytesize": self.bytesize,
      "parity": self.parity,
      "stopbits": self.stopbits,
      "write_timeout": self.write_timeout,
      "timeout": self.timeout,
    }

  @classmethod
  def deserialize(cls, data: dict) -> "Serial":
    return cls(
      port=data["port"],
      baudrate=data["baudrate"],
      bytesize=data["bytesize"],
      parity=data["parity"],
      stopbits=data["stopbits"],
      write_timeout=data["write_timeout"],
      timeout=data["timeout"],
    )
