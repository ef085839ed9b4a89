"""Dispatches complete packages by content, encoding and interaction type."""

import logging
from typing import Callable, Optional

from sapodilla.protocol.constants import ContentType, EncodingType, InteractionType
from sapodilla.protocol.errors import UnexpectedContent
from sapodilla.protocol.fragments import Package

logger = logging.getLogger(__name__)

PackageHandler = Callable[[Package], None]


class MessageRouter:
  """Routing table:

  - message + JSON + response: `on_response`
  - message + JSON + request: `on_request` (the accessory sends events as requests)
  - data, any encoding: the current data consumer, if one is set

  Anything else raises `UnexpectedContent`.
  """

  def __init__(self, on_response: PackageHandler, on_request: PackageHandler):
    self._on_response = on_response
    self._on_request = on_request
    self._data_consumer: Optional[PackageHandler] = None

  def set_data_consumer(self, consumer: Optional[PackageHandler]) -> None:
    """Install the handler for inbound data packages, or remove it with None."""
    self._data_consumer = consumer

  def dispatch(self, package: Package) -> None:
    if package.content_type == ContentType.DATA:
      if self._data_consumer is None:
        raise UnexpectedContent(
          f"data package #{package.message_number} for job {package.job_id} but nobody expects data"
        )
      self._data_consumer(package)
      return

    if package.encoding != EncodingType.JSON:
      raise UnexpectedContent(
        f"message package #{package.message_number} with {package.encoding.name.lower()} encoding"
      )

    if package.interaction == InteractionType.RESPONSE:
      self._on_response(package)
    else:
      self._on_request(package)
