import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

LOG_FROM_STRING = {
  "IO": 5,
  "DEBUG": logging.DEBUG,
  "INFO": logging.INFO,
  "WARNING": logging.WARNING,
  "ERROR": logging.ERROR,
  "CRITICAL": logging.CRITICAL,
}

LOG_TO_STRING = {v: k for k, v in LOG_FROM_STRING.items()}

SECTIONS = ("logging", "link")


def _optional(value, cast):
  return cast(value) if value not in (None, "") else None


@dataclass
class Config:
  """The configuration object for sapodilla."""

  @dataclass
  class Logging:
    """The logging configuration."""

    level: int = logging.INFO
    log_dir: Optional[Path] = None

  @dataclass
  class Link:
    """Settings for the serial link to the printer.

    Attributes:
      port: serial device the RFCOMM channel is bound to, e.g. `/dev/rfcomm0`.
      baudrate: serial baud rate. RFCOMM ignores it, but pyserial requires one.
      read_timeout: seconds a single serial read may block.
      terminal_id: fixed terminal id for outgoing frames. If None, each frame reuses its message
        number, which is what the vendor app does.
      poll_interval: seconds between `get-job-info` polls while waiting for a job.
      stale_package_timeout: seconds after which an incomplete inbound package is abandoned.
    """

    port: Optional[str] = None
    baudrate: int = 9600
    read_timeout: float = 0.1
    terminal_id: Optional[int] = None
    poll_interval: float = 1.0
    stale_package_timeout: float = 30.0

  logging: Logging = field(default_factory=Logging)
  link: Link = field(default_factory=Link)

  @classmethod
  def from_dict(cls, d: dict) -> "Config":
    unknown = sorted(set(d) - set(SECTIONS))
    if unknown:
      raise ValueError(f"unknown config section(s): {', '.join(unknown)}")
    log = d.get("logging", {})
    link = d.get("link", {})
    defaults = cls.Link()
    return cls(
      logging=cls.Logging(
        level=LOG_FROM_STRING[log.get("level", "INFO")],
        log_dir=_optional(log.get("log_dir"), Path),
      ),
      link=cls.Link(
        port=_optional(link.get("port"), str),
        baudrate=int(link.get("baudrate", defaults.baudrate)),
        read_timeout=float(link.get("read_timeout", defaults.read_timeout)),
        terminal_id=_optional(link.get("terminal_id"), int),
        poll_interval=float(link.get("poll_interval", defaults.poll_interval)),
        stale_package_timeout=float(
          link.get("stale_package_timeout", defaults.stale_package_timeout)
        ),
      ),
    )

  @property
  def as_dict(self) -> dict:
    return {
      "logging": {
        "level": LOG_TO_STRING[self.logging.level],
        "log_dir": str(self.logging.log_dir) if self.logging.log_dir is not None else None,
      },
      "link": {
        "port": self.link.port,
        "baudrate": self.link.baudrate,
        "read_timeout": self.link.read_timeout,
        "terminal_id": self.link.terminal_id,
        "poll_interval": self.link.poll_interval,
        "stale_package_timeout": self.link.stale_package_timeout,
      },
    }
