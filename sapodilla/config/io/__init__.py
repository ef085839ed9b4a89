from abc import ABC, abstractmethod

from sapodilla.config.config import Config
from sapodilla.config.formats import ConfigLoader, ConfigSaver


class ConfigReader(ABC):
  """Reads a `Config` from a source, leaving the parsing to a `ConfigLoader`."""

  open_mode: str = "r"
  encoding: str

  def __init__(self, format_loader: ConfigLoader):
    self.format_loader = format_loader

  @abstractmethod
  def read(self, r) -> Config:
    """Open `r` and load it with `format_loader`."""


class ConfigWriter(ABC):
  """Writes a `Config` to a destination, leaving the formatting to a `ConfigSaver`."""

  open_mode: str = "w"
  encoding: str

  def __init__(self, format_saver: ConfigSaver):
    self.format_saver = format_saver

  @abstractmethod
  def write(self, w, cfg: Config):
    """Format `cfg` with `format_saver` and write it to `w`."""
