"""Bulk job data upload.

After the device accepts a `print-job` or `combo-job` it expects the job's files as data packages.
Every packet of such a package starts with the job id as a little-endian u32.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Union

from sapodilla.protocol.constants import (
  JOB_ID_LENGTH,
  MAX_MESSAGE_NUMBER,
  ContentType,
  EncodingType,
  InteractionType,
)
from sapodilla.protocol.session import JobHandle, JobKind

logger = logging.getLogger(__name__)

# (total bytes, bytes sent so far)
ProgressCallback = Callable[[int, int], None]

# payload, content type, interaction, encoding, prefix, progress -> message number
SendPayload = Callable[..., Awaitable[int]]


def job_id_prefix(job_id: int) -> bytes:
  if not 0 <= job_id <= MAX_MESSAGE_NUMBER:
    raise ValueError(f"job id {job_id} does not fit in {JOB_ID_LENGTH} bytes")
  return job_id.to_bytes(JOB_ID_LENGTH, "little")


class JobDataUploader:
  def __init__(self, send_payload: SendPayload):
    self._send_payload = send_payload

  async def upload(
    self,
    job: Union[JobHandle, int],
    payload: bytes,
    content_format: EncodingType = EncodingType.BINARY,
    progress: Optional[ProgressCallback] = None,
  ) -> int:
    """Send `payload` as one data package tagged with the job id.

    Args:
      job: the accepted job, or its id.
      payload: file contents, e.g. JPEG or PLT data.
      content_format: encoding byte for the data packets. The device only receives binary data.
      progress: called after each packet with the total and sent byte counts of `payload`.

    Returns:
      The message number of the data package.
    """

    job_id = job.job_id if isinstance(job, JobHandle) else job
    logger.info("uploading %d bytes for job %d", len(payload), job_id)
    return await self._send_payload(
      payload,
      content_type=ContentType.DATA,
      interaction=InteractionType.REQUEST,
      encoding=content_format,
      prefix=job_id_prefix(job_id),
      progress=progress,
    )

  async def upload_combo(
    self,
    job: Union[JobHandle, int],
    plot: bytes,
    photo: bytes,
    progress: Optional[ProgressCallback] = None,
  ) -> List[int]:
    """Upload the cut plot, then the photo, each as its own package with the same job id.

    `progress` sees both files as one transfer.
    """

    if isinstance(job, JobHandle) and job.kind != JobKind.COMBO:
      raise ValueError(f"job {job.job_id} is a {job.kind.value} job, not a combo job")

    total = len(plot) + len(photo)
    plot_progress = photo_progress = None
    if progress is not None:
      plot_progress = lambda _, sent: progress(total, sent)
      photo_progress = lambda _, sent: progress(total, len(plot) + sent)

    return [
      await self.upload(job, plot, progress=plot_progress),
      await self.upload(job, photo, progress=photo_progress),
    ]
