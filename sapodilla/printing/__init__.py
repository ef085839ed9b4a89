from .backend import PrinterBackend
from .chatterbox import PrinterChatterboxBackend
from .devices import DEVICES, PIXCUT_S1, CanvasSize, Device, Mode, ModeType, find_device
from .jobs import (
  JobState,
  JobStatusInfo,
  JobSubState,
  PrinterState,
  PrinterStatus,
  PrinterSubState,
  cut_job_params,
  print_job_params,
)
from .pixcut_backend import PixCutBackend
from .printer import Printer
