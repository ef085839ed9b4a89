import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from sapodilla.config import Config
from sapodilla.io.serial import Serial
from sapodilla.printing.backend import PrinterBackend
from sapodilla.protocol.errors import LinkError
from sapodilla.protocol.link import DeviceLink
from sapodilla.protocol.session import EventCallback, JobHandle
from sapodilla.protocol.uploader import ProgressCallback

logger = logging.getLogger(__name__)


class PixCutBackend(PrinterBackend):
  """Backend for the PixCut S1 photo printer and cutter.

  The printer speaks over Bluetooth RFCOMM, which the operating system exposes as a serial port.
  A background task reads the port and feeds the link; calls and uploads write to it directly.
  """

  def __init__(
    self,
    port: str,
    baudrate: int = 9600,
    read_timeout: float = 0.1,
    terminal_id: Optional[int] = None,
    key: Optional[Union[bytes, str]] = None,
    call_timeout: float = 10.0,
    stale_package_timeout: float = 30.0,
  ):
    """
    Args:
      port: serial port of the RFCOMM channel, e.g. `/dev/rfcomm0` or `COM5`.
      terminal_id: fixed terminal id, see `DeviceLink`.
      key: RC4 link key, as bytes or a hex string. Only needed for encrypted links.
      call_timeout: seconds to wait for the response to a call.
      stale_package_timeout: seconds after which an incomplete inbound package is dropped.
    """

    super().__init__()
    self.port = port
    self.baudrate = baudrate
    self.read_timeout = read_timeout
    self.terminal_id = terminal_id
    self.key = bytes.fromhex(key) if isinstance(key, str) else key
    self.call_timeout = call_timeout
    self.stale_package_timeout = stale_package_timeout

    self.io = Serial(port=self.port, baudrate=self.baudrate, timeout=self.read_timeout)
    self._link: Optional[DeviceLink] = None
    self._read_task: Optional["asyncio.Task[None]"] = None

  @classmethod
  def from_config(cls, config: Config.Link, **kwargs) -> "PixCutBackend":
    if config.port is None:
      raise ValueError("no serial port configured")
    return cls(
      port=config.port,
      baudrate=config.baudrate,
      read_timeout=config.read_timeout,
      terminal_id=config.terminal_id,
      stale_package_timeout=config.stale_package_timeout,
      **kwargs,
    )

  @property
  def link(self) -> DeviceLink:
    if self._link is None:
      raise RuntimeError("Call setup() first.")
    return self._link

  async def setup(self):
    await self.io.setup()
    await self.io.reset_input_buffer()
    self._link = DeviceLink(self.io.write, terminal_id=self.terminal_id, key=self.key)
    self._read_task = asyncio.create_task(self._read_loop())
    logger.info("connected to printer on %s", self.port)

  async def stop(self):
    if self._read_task is not None and not self._read_task.done():
      self._read_task.cancel()
      try:
        await self._read_task
      except asyncio.CancelledError:
        pass
    self._read_task = None
    if self._link is not None:
      self._link.close()
      self._link = None
    await self.io.stop()

  async def _read_loop(self):
    link = self.link
    last_eviction = time.monotonic()
    try:
      while True:
        data = await self.io.read_available()
        if len(data) > 0:
          link.on_receive(data)

        now = time.monotonic()
        if now - last_eviction >= self.stale_package_timeout:
          link.evict_stale(self.stale_package_timeout)
          last_eviction = now
    except Exception as e:  # pylint: disable=broad-except
      logger.exception("reading from %s failed, closing the link", self.port)
      link.close(LinkError(f"serial read failed: {e}"))

  def serialize(self) -> dict:
    return {
      **super().serialize(),
      "port": self.port,
      "baudrate": self.baudrate,
      "read_timeout": self.read_timeout,
      "terminal_id": self.terminal_id,
      "key": self.key.hex() if self.key is not None else None,
      "call_timeout": self.call_timeout,
      "stale_package_timeout": self.stale_package_timeout,
    }

  async def get_properties(self, names: Sequence[str]) -> List[Any]:
    return await self.link.session.get_prop(names, timeout=self.call_timeout)

  async def get_job_info(self, job_id: int) -> Dict[str, Any]:
    return await self.link.session.get_job_info(job_id, timeout=self.call_timeout)

  async def submit_print_job(self, descriptor: Dict[str, Any]) -> JobHandle:
    return await self.link.session.print_job(descriptor, timeout=self.call_timeout)

  async def submit_combo_job(
    self,
    print_descriptor: Dict[str, Any],
    cut_descriptor: Dict[str, Any],
  ) -> JobHandle:
    return await self.link.session.combo_job(
      print_descriptor, cut_descriptor, timeout=self.call_timeout
    )

  async def upload(
    self,
    job: JobHandle,
    data: bytes,
    progress: Optional[ProgressCallback] = None,
  ) -> None:
    await self.link.uploader.upload(job, data, progress=progress)

  async def upload_combo(
    self,
    job: JobHandle,
    plot: bytes,
    photo: bytes,
    progress: Optional[ProgressCallback] = None,
  ) -> None:
    await self.link.uploader.upload_combo(job, plot, photo, progress=progress)

  async def resume_printer(self) -> Any:
    return await self.link.session.call("resume-printer", timeout=self.call_timeout)

  def subscribe(self, method: str, callback: EventCallback) -> Callable[[], None]:
    return self.link.session.subscribe(method, callback)
