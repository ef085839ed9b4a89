from abc import ABCMeta, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence

from sapodilla.machines.backend import MachineBackend
from sapodilla.protocol.session import EventCallback, JobHandle
from sapodilla.protocol.uploader import ProgressCallback


class PrinterBackend(MachineBackend, metaclass=ABCMeta):
  """Backend for photo printers that take JSON job descriptors followed by bulk job data."""

  @abstractmethod
  async def get_properties(self, names: Sequence[str]) -> List[Any]:
    """Read device properties, one value per name."""

  @abstractmethod
  async def get_job_info(self, job_id: int) -> Dict[str, Any]:
    """Get the raw job state object of a job."""

  @abstractmethod
  async def submit_print_job(self, descriptor: Dict[str, Any]) -> JobHandle:
    ...

  @abstractmethod
  async def submit_combo_job(
    self,
    print_descriptor: Dict[str, Any],
    cut_descriptor: Dict[str, Any],
  ) -> JobHandle:
    ...

  @abstractmethod
  async def upload(
    self,
    job: JobHandle,
    data: bytes,
    progress: Optional[ProgressCallback] = None,
  ) -> None:
    """Send the image of a print job."""

  @abstractmethod
  async def upload_combo(
    self,
    job: JobHandle,
    plot: bytes,
    photo: bytes,
    progress: Optional[ProgressCallback] = None,
  ) -> None:
    """Send the cut plot, then the image, of a combo job."""

  @abstractmethod
  async def resume_printer(self) -> Any:
    ...

  @abstractmethod
  def subscribe(self, method: str, callback: EventCallback) -> Callable[[], None]:
    """Deliver device events named `method` to `callback`. Returns a function that unsubscribes."""
