"""Known devices, their print modes and the media each mode takes."""

import enum
from dataclasses import dataclass
from typing import Optional, Tuple


class ModeType(enum.Enum):
  PRINT = "Print"
  PRINT_AND_CUT = "Print and Cut"

  @property
  def channel(self) -> int:
    return {ModeType.PRINT: 30784, ModeType.PRINT_AND_CUT: 30960}[self]

  @property
  def job_type(self) -> int:
    return {ModeType.PRINT: 0, ModeType.PRINT_AND_CUT: 600}[self]

  @property
  def link_type(self) -> int:
    return {ModeType.PRINT: 1000, ModeType.PRINT_AND_CUT: 0}[self]

  @property
  def has_cutting(self) -> bool:
    return self == ModeType.PRINT_AND_CUT


@dataclass(frozen=True)
class CanvasSize:
  """A media format.

  Attributes:
    name: label printed on the media pack, e.g. "4x6".
    media_size: media size code sent in job descriptors.
    media_type: media type code sent in job descriptors.
    size: printable canvas (width, height) in device pixels.
    safe_area: (width, height) in device pixels that is safe to cut in.
  """

  name: str
  media_size: int
  media_type: int
  size: Tuple[float, float]
  safe_area: Tuple[float, float]


@dataclass(frozen=True)
class Mode:
  mode_type: ModeType
  canvas_sizes: Tuple[CanvasSize, ...]

  def canvas(self, name: Optional[str] = None) -> CanvasSize:
    """Look up a canvas by name. Without a name, the mode's first canvas is returned."""
    if name is None:
      return self.canvas_sizes[0]
    for canvas in self.canvas_sizes:
      if canvas.name == name:
        return canvas
    available = ", ".join(c.name for c in self.canvas_sizes)
    raise ValueError(f"{self.mode_type.value} mode has no canvas '{name}' (available: {available})")


@dataclass(frozen=True)
class Device:
  name: str
  model: str
  dpi: float
  cutter_scale_factor: float
  modes: Tuple[Mode, ...]

  def mode(self, mode_type: ModeType) -> Mode:
    for mode in self.modes:
      if mode.mode_type == mode_type:
        return mode
    raise ValueError(f"{self.name} does not support {mode_type.value}")


PIXCUT_S1 = Device(
  name="PixCut S1",
  model="DHP700",
  dpi=300.0,
  cutter_scale_factor=3.38667,
  modes=(
    Mode(
      mode_type=ModeType.PRINT,
      canvas_sizes=(
        CanvasSize(
          name="4x6",
          media_size=5012,
          media_type=2010,
          size=(4.0 * 300, 6.0 * 300),
          safe_area=(4.0 * 300, 6.0 * 300),
        ),
      ),
    ),
    Mode(
      mode_type=ModeType.PRINT_AND_CUT,
      canvas_sizes=(
        CanvasSize(
          name="4x7",
          media_size=5013,
          media_type=2030,
          size=(4.0 * 300, 7.0 * 300),
          safe_area=(3.62 * 300, 6.77 * 300),
        ),
      ),
    ),
  ),
)

DEVICES: Tuple[Device, ...] = (PIXCUT_S1,)


def find_device(model: str) -> Device:
  """Find a device by its model string, as reported by the `model` property."""
  for device in DEVICES:
    if device.model == model:
      return device
  raise ValueError(f"unknown device model '{model}'")
