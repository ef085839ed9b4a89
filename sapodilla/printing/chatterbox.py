from typing import Any, Callable, Dict, List, Optional, Sequence

from sapodilla.printing.backend import PrinterBackend
from sapodilla.printing.jobs import JobState, JobSubState, PrinterState, PrinterSubState
from sapodilla.protocol.session import EventCallback, JobHandle, JobKind
from sapodilla.protocol.uploader import ProgressCallback


class PrinterChatterboxBackend(PrinterBackend):
  """Chatter box backend for device-free testing. Prints out all operations.

  Jobs complete as soon as their data has been uploaded.
  """

  def __init__(self, model: str = "DHP700", first_job_id: int = 1) -> None:
    super().__init__()
    self.model = model
    self.first_job_id = first_job_id
    self._next_job_id = first_job_id
    self._jobs: Dict[int, Dict[str, Any]] = {}

  async def setup(self) -> None:
    print("Setting up the printer.")

  async def stop(self) -> None:
    print("Stopping the printer.")

  def serialize(self) -> dict:
    return {**super().serialize(), "model": self.model, "first_job_id": self.first_job_id}

  async def get_properties(self, names: Sequence[str]) -> List[Any]:
    print(f"Getting properties {', '.join(names)}.")
    canned = {
      "model": self.model,
      "printer-state": str(int(PrinterState.IDLE)),
      "printer-sub-state": str(int(PrinterSubState.IDLE_NONE)),
      "printer-state-alerts": [],
    }
    return [canned.get(name, {name: None}) for name in names]

  async def get_job_info(self, job_id: int) -> Dict[str, Any]:
    print(f"Getting info for job {job_id}.")
    if job_id not in self._jobs:
      raise ValueError(f"unknown job {job_id}")
    return self._jobs[job_id]

  def _new_job(self, kind: JobKind, descriptor: Dict[str, Any]) -> JobHandle:
    job = JobHandle(job_id=self._next_job_id, kind=kind)
    self._next_job_id += 1
    self._jobs[job.job_id] = {
      "job-id": job.job_id,
      "job-state": int(JobState.WAITING),
      "job-sub-state": int(JobSubState.WAITING_NONE),
      "copies": descriptor.get("copies", 1),
      "file-size": descriptor.get("file-size", 0),
      "transfer-size": 0,
    }
    return job

  async def submit_print_job(self, descriptor: Dict[str, Any]) -> JobHandle:
    print(f"Submitting print job for {descriptor['document-name']}.")
    return self._new_job(JobKind.PRINT, descriptor)

  async def submit_combo_job(
    self,
    print_descriptor: Dict[str, Any],
    cut_descriptor: Dict[str, Any],
  ) -> JobHandle:
    print(
      f"Submitting combo job for {print_descriptor['document-name']} and "
      f"{cut_descriptor['document-name']}."
    )
    return self._new_job(JobKind.COMBO, print_descriptor)

  def _receive(self, job: JobHandle, size: int):
    info = self._jobs[job.job_id]
    info["transfer-size"] += size
    info["job-state"] = int(JobState.COMPLETED)
    info["job-sub-state"] = int(JobSubState.COMPLETED_NONE)

  async def upload(
    self,
    job: JobHandle,
    data: bytes,
    progress: Optional[ProgressCallback] = None,
  ) -> None:
    print(f"Uploading {len(data)} bytes for job {job.job_id}.")
    self._receive(job, len(data))
    if progress is not None:
      progress(len(data), len(data))

  async def upload_combo(
    self,
    job: JobHandle,
    plot: bytes,
    photo: bytes,
    progress: Optional[ProgressCallback] = None,
  ) -> None:
    print(f"Uploading {len(plot)} bytes of plot and {len(photo)} bytes of photo for job {job.job_id}.")
    self._receive(job, len(plot) + len(photo))
    if progress is not None:
      progress(len(plot) + len(photo), len(plot) + len(photo))

  async def resume_printer(self) -> Any:
    print("Resuming the printer.")
    return {}

  def subscribe(self, method: str, callback: EventCallback) -> Callable[[], None]:
    print(f"Subscribing to {method}.")
    return lambda: None
