"""Job descriptors and the state objects the device reports."""

import enum
import hashlib
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from sapodilla.printing.devices import CanvasSize, ModeType

DOCUMENT_FORMAT_JPEG = 9
DOCUMENT_FORMAT_PLT = 18
HASH_METHOD_SHA1 = 1
USER_ACCOUNT_PLACEHOLDER = "000000.00000000000000000000000000000000.0000"


class _DeviceEnum(enum.IntEnum):
  @classmethod
  def parse(cls, value: Union[str, int]):
    """The device sends these values as numbers or as numeric strings."""
    return cls(int(value))

  @classmethod
  def parse_lenient(cls, value: Union[str, int]) -> Union["_DeviceEnum", int]:
    """Like `parse`, but unknown values are returned as plain ints."""
    try:
      return cls.parse(value)
    except ValueError:
      return int(value)


class JobState(_DeviceEnum):
  WAITING = 1
  START = 2
  PROCESSING = 3
  PROCESSING_HELD = 4
  PENDING = 5
  TERMINATING = 6
  ABORTED = 7
  CANCELLED = 8
  COMPLETED = 9

  @property
  def is_finished(self) -> bool:
    return self in (JobState.ABORTED, JobState.CANCELLED, JobState.COMPLETED)


class JobSubState(_DeviceEnum):
  WAITING_NONE = 1000
  START_NONE = 2000
  PROCESSING_NONE = 3000
  PROCESSING_PRINTING_DATA_DOWNLOADING = 3001
  PROCESSING_PRINTING_DATA_UPLOADING = 3002
  PROCESSING_PRINTING_DATA_CLOUD_RENDERING = 3003
  PROCESSING_PRINTING_DATA_LOCAL_RENDERING = 3004
  PROCESSING_PRINTING = 3005
  PROCESSING_HELD_NONE = 4000
  PENDING_NONE = 5000
  TERMINATING_NONE = 6000
  ABORTED_NONE = 7000
  CANCELLED_NONE = 8000
  COMPLETED_NONE = 9000


class PrinterState(_DeviceEnum):
  INITIALIZING = 10
  IDLE = 20
  SLEEP = 30
  PROCESSING = 40
  OFF = 50
  ERROR = 60


class PrinterSubState(_DeviceEnum):
  INIT_NONE = 1000
  IDLE_NONE = 2000
  PRINTING = 3001
  FILE_TRANSFERRING = 3002
  CANCELLING = 3006
  UPGRADING = 3007
  CALIBRATING = 3008
  SEMI_AUTO_PRINTING = 3009
  SEMI_AUTO_SCAN_REQUIRED = 3010
  SEMI_AUTO_SCANNING = 3011
  SCAN_WAITING = 3012
  COPY_WAITING = 3013
  RENDERING = 3014
  INITIALIZING = 3015
  DECODING = 3016
  LOADING_PAPER = 3017
  PRINTING_YELLOW = 3018
  PRINTING_MAGENTA = 3019
  PRINTING_CYAN = 3020
  PRINTING_OC = 3021
  PREHEATING = 3022
  COOLDOWN = 3023
  CLEANING = 3024
  HOME_FEED = 3025
  EJECTING_PAPER = 3026
  SMART_SHEET = 3027
  CUT_PICK = 3028
  CUT_HOME = 3029
  CUTTING = 3030
  CUT_EJECT = 3031
  NORMAL = 4002
  NOT_REAL_OFF = 5002
  ERROR_NONE = 6000


def _int(d: Dict[str, Any], key: str, default: int = 0) -> int:
  value = d.get(key, default)
  return int(value) if value not in (None, "") else default


@dataclass(frozen=True)
class JobStatusInfo:
  """Result of `get-job-info`, also the payload of job finish events."""

  job_id: int
  job_state: JobState
  job_sub_state: Union[JobSubState, int, None] = None
  copies: int = 0
  printing_page_number: int = 0
  user_account: str = ""
  channel: int = 0
  media_size: int = 0
  media_type: int = 0
  job_type: int = 0
  document_format: int = 0
  file_size: int = 0
  transfer_status: int = 0
  transfer_size: int = 0

  @property
  def is_finished(self) -> bool:
    return self.job_state.is_finished

  @classmethod
  def from_dict(cls, d: Dict[str, Any]) -> "JobStatusInfo":
    """Parse the kebab-case object the device sends.

    Raises:
      ValueError: `job-id` or `job-state` is missing or unknown.
    """

    try:
      job_id = int(d["job-id"])
      job_state = JobState.parse(d["job-state"])
    except (KeyError, TypeError) as e:
      raise ValueError(f"not a job state object: {d!r}") from e

    sub_state = d.get("job-sub-state")
    return cls(
      job_id=job_id,
      job_state=job_state,
      job_sub_state=JobSubState.parse_lenient(sub_state) if sub_state is not None else None,
      copies=_int(d, "copies"),
      printing_page_number=_int(d, "printing-page-number"),
      user_account=str(d.get("user-account", "")),
      channel=_int(d, "channel"),
      media_size=_int(d, "media-size"),
      media_type=_int(d, "media-type"),
      job_type=_int(d, "job-type"),
      document_format=_int(d, "document-format"),
      file_size=_int(d, "file-size"),
      transfer_status=_int(d, "transfer-status"),
      transfer_size=_int(d, "transfer-size"),
    )


STATUS_PROPERTIES = ["printer-state", "printer-sub-state", "printer-state-alerts"]
INFO_PROPERTIES = [
  "model",
  "mac-address",
  "serial-number",
  "sn-pcba",
  "firmware-revision",
  "hardware-revision",
  "bt-phone-mac",
  "printer-state",
  "printer-sub-state",
  "printer-state-alerts",
  "auto-off-interval",
  "media-size",
]


@dataclass(frozen=True)
class PrinterStatus:
  state: Union[PrinterState, int]
  sub_state: Union[PrinterSubState, int, None]
  alerts: List[Any]

  @property
  def is_error(self) -> bool:
    return self.state == PrinterState.ERROR

  @classmethod
  def from_properties(cls, properties: Dict[str, Any]) -> "PrinterStatus":
    sub_state = properties.get("printer-sub-state")
    alerts = properties.get("printer-state-alerts")
    if alerts is None:
      alerts = []
    elif not isinstance(alerts, list):
      alerts = [alerts]
    return cls(
      state=PrinterState.parse_lenient(properties["printer-state"]),
      sub_state=PrinterSubState.parse_lenient(sub_state) if sub_state not in (None, "") else None,
      alerts=alerts,
    )


def unwrap_property(name: str, value: Any) -> Any:
  """Some properties come back as `{name: value}` instead of a bare value."""
  if isinstance(value, dict) and len(value) == 1 and name in value:
    return value[name]
  return value


def print_job_params(
  mode_type: ModeType,
  canvas: CanvasSize,
  image: bytes,
  copies: int = 1,
  now: Optional[float] = None,
) -> Dict[str, Any]:
  """Build the `print-job` descriptor for a JPEG image.

  Args:
    now: job creation time in seconds since the epoch, defaults to the current time.
  """

  if copies < 1:
    raise ValueError("copies must be at least 1")
  millis = int((time.time() if now is None else now) * 1000)
  return {
    "media-size": canvas.media_size,
    "media-type": canvas.media_type,
    "job-type": mode_type.job_type,
    "channel": mode_type.channel,
    "file-size": len(image),
    "document-format": DOCUMENT_FORMAT_JPEG,
    "document-name": f"{millis}.jpeg",
    "hash-method": HASH_METHOD_SHA1,
    "hash-value": hashlib.sha1(image).hexdigest(),
    "user-account": USER_ACCOUNT_PLACEHOLDER,
    "job-send-time": millis // 1000,
    "link-type": mode_type.link_type,
    "copies": copies,
  }


def cut_job_params(
  mode_type: ModeType,
  canvas: CanvasSize,
  plot: bytes,
  copies: int = 1,
  now: Optional[float] = None,
) -> Dict[str, Any]:
  """Build the `cut-job` descriptor for PLT cut data."""

  if copies < 1:
    raise ValueError("copies must be at least 1")
  millis = int((time.time() if now is None else now) * 1000)
  return {
    "copies": copies,
    "media-size": canvas.media_size,
    "document-name": f"{millis}.plt",
    "file-size": len(plot),
    "channel": mode_type.channel,
    "media-type": canvas.media_type,
    "job-type": mode_type.job_type,
    "document-format": DOCUMENT_FORMAT_PLT,
    "job-send-time": millis // 1000,
  }
