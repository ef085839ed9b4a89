import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Sequence, Union

from sapodilla.machines.machine import Machine, need_setup_finished
from sapodilla.printing.backend import PrinterBackend
from sapodilla.printing.devices import PIXCUT_S1, Device, ModeType
from sapodilla.printing.jobs import (
  STATUS_PROPERTIES,
  JobStatusInfo,
  PrinterStatus,
  cut_job_params,
  print_job_params,
  unwrap_property,
)
from sapodilla.protocol.session import (
  EVENT_COMBO_JOB_FINISH,
  EVENT_PRINT_JOB_FINISH,
  Event,
  EventCallback,
  JobHandle,
)
from sapodilla.protocol.uploader import ProgressCallback

logger = logging.getLogger(__name__)


class Printer(Machine):
  """Frontend for photo printers and print-and-cut machines.

  Example:
    >>> async with Printer(backend=PixCutBackend(port="/dev/rfcomm0")) as printer:
    ...   job = await printer.print_photo(open("photo.jpg", "rb").read())
    ...   info = await printer.wait_for_job(job)
  """

  def __init__(self, backend: PrinterBackend, device: Device = PIXCUT_S1):
    super().__init__(backend=backend)
    self.backend: PrinterBackend = backend  # fix type
    self.device = device

  @need_setup_finished
  async def get_properties(self, names: Sequence[str]) -> Dict[str, Any]:
    """Read device properties by name, e.g. `["model", "firmware-revision"]`."""
    values = await self.backend.get_properties(names)
    if len(values) != len(names):
      logger.warning("asked for %d properties, got %d values", len(names), len(values))
    return {name: unwrap_property(name, value) for name, value in zip(names, values)}

  @need_setup_finished
  async def get_status(self) -> PrinterStatus:
    properties = await self.get_properties(STATUS_PROPERTIES)
    return PrinterStatus.from_properties(properties)

  @need_setup_finished
  async def get_job_info(self, job: Union[JobHandle, int]) -> JobStatusInfo:
    job_id = job.job_id if isinstance(job, JobHandle) else job
    return JobStatusInfo.from_dict(await self.backend.get_job_info(job_id))

  @need_setup_finished
  async def resume(self):
    """Resume a printer that paused, e.g. after media was reloaded."""
    return await self.backend.resume_printer()

  @need_setup_finished
  async def print_photo(
    self,
    image: bytes,
    canvas: Optional[str] = None,
    copies: int = 1,
    progress: Optional[ProgressCallback] = None,
  ) -> JobHandle:
    """Print a JPEG image.

    Args:
      image: JPEG data sized for the canvas.
      canvas: canvas name, e.g. "4x6". Defaults to the first canvas of the print mode.
      copies: number of prints.
      progress: called with (total, sent) byte counts while the image is uploaded.

    Returns:
      The accepted job. Use `wait_for_job` to follow it.
    """

    mode = self.device.mode(ModeType.PRINT)
    descriptor = print_job_params(mode.mode_type, mode.canvas(canvas), image, copies=copies)
    job = await self.backend.submit_print_job(descriptor)
    logger.info("print job %d accepted, uploading %d bytes", job.job_id, len(image))
    await self.backend.upload(job, image, progress=progress)
    return job

  @need_setup_finished
  async def print_and_cut(
    self,
    image: bytes,
    plot: bytes,
    canvas: Optional[str] = None,
    copies: int = 1,
    progress: Optional[ProgressCallback] = None,
  ) -> JobHandle:
    """Print a JPEG image and cut along a PLT plot.

    The plot is uploaded before the image. Both uploads carry the id of the same combo job.
    """

    mode = self.device.mode(ModeType.PRINT_AND_CUT)
    canvas_size = mode.canvas(canvas)
    now = time.time()
    job = await self.backend.submit_combo_job(
      print_job_params(mode.mode_type, canvas_size, image, copies=copies, now=now),
      cut_job_params(mode.mode_type, canvas_size, plot, copies=copies, now=now),
    )
    logger.info(
      "combo job %d accepted, uploading %d bytes of plot and %d bytes of image",
      job.job_id, len(plot), len(image),
    )
    await self.backend.upload_combo(job, plot, image, progress=progress)
    return job

  def add_event_listener(self, method: str, callback: EventCallback) -> Callable[[], None]:
    """Call `callback` with every device event named `method` ("*" for all events).

    Returns:
      A function that removes the listener.
    """

    return self.backend.subscribe(method, callback)

  @need_setup_finished
  async def wait_for_job(
    self,
    job: Union[JobHandle, int],
    poll_interval: float = 1.0,
    timeout: Optional[float] = None,
  ) -> JobStatusInfo:
    """Wait until a job is finished (completed, cancelled or aborted).

    The job is polled with `get-job-info` every `poll_interval` seconds. A finish event for the job
    ends the wait early.

    Raises:
      TimeoutError: the job did not finish within `timeout` seconds.
    """

    job_id = job.job_id if isinstance(job, JobHandle) else job
    finished: "asyncio.Future[JobStatusInfo]" = asyncio.get_running_loop().create_future()

    def on_finish(event: Event):
      params = event.params[0] if isinstance(event.params, list) and event.params else event.params
      if not isinstance(params, dict):
        logger.warning("%s without job state: %r", event.method, event.params)
        return
      try:
        info = JobStatusInfo.from_dict(params)
      except ValueError:
        logger.warning("could not parse %s: %r", event.method, params)
        return
      if info.job_id == job_id and not finished.done():
        finished.set_result(info)

    unsubscribers = [
      self.backend.subscribe(EVENT_PRINT_JOB_FINISH, on_finish),
      self.backend.subscribe(EVENT_COMBO_JOB_FINISH, on_finish),
    ]
    start = time.monotonic()
    try:
      while True:
        info = await self.get_job_info(job_id)
        logger.debug("job %d: %s", job_id, info.job_state.name)
        if info.is_finished:
          return info

        wait = poll_interval
        if timeout is not None:
          remaining = timeout - (time.monotonic() - start)
          if remaining <= 0:
            raise TimeoutError(f"job {job_id} did not finish within {timeout}s")
          wait = min(wait, remaining)
        try:
          return await asyncio.wait_for(asyncio.shield(finished), timeout=wait)
        except asyncio.TimeoutError:
          pass
    finally:
      for unsubscribe in unsubscribers:
        unsubscribe()
      if not finished.done():
        finished.cancel()
