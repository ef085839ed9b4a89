"""Errors raised by the link protocol engine.

Every per-packet error is local to the packet or package it was raised for. The link logs it,
reports it to its error listeners and carries on with the next frame.
"""

from typing import Any, Optional


class LinkError(Exception):
  """Base class for all link protocol errors."""


class FramingError(LinkError):
  """Bad prefix, suffix, version, header field or length. The frame is discarded."""


class PayloadTooLarge(FramingError):
  """The declared payload length exceeds the 896 byte limit."""

  def __init__(self, length: int):
    super().__init__(f"declared payload length {length} exceeds 896 bytes")
    self.length = length


class ChecksumError(LinkError):
  """The transmitted checksum does not match the frame. Possibly transport corruption, retriable."""

  def __init__(self, expected: int, actual: int):
    super().__init__(f"checksum mismatch: frame carries 0x{actual:02X}, computed 0x{expected:02X}")
    self.expected = expected
    self.actual = actual


class SequenceAnomaly(LinkError):
  """Duplicate, out-of-order or otherwise unexpected message number or package index.

  Not fatal. The link reports it to error listeners and drops the packet only for duplicates.
  """

  DUPLICATE = "duplicate"
  OUT_OF_ORDER = "out-of-order"
  UNKNOWN = "unknown"
  EXHAUSTED = "exhausted"

  def __init__(self, message: str, message_number: Optional[int] = None, kind: str = UNKNOWN):
    super().__init__(message)
    self.message_number = message_number
    self.kind = kind


class UnsupportedEncryptionMode(LinkError):
  """The flags carry an encryption mode other than none or RC4."""

  def __init__(self, mode: int):
    super().__init__(f"unsupported encryption mode 0b{mode:03b}")
    self.mode = mode


class UnexpectedContent(LinkError):
  """A complete package cannot be routed or its content cannot be interpreted."""


class UnsolicitedResponse(LinkError):
  """A response arrived whose id matches no pending call."""

  def __init__(self, request_id: Any):
    super().__init__(f"response for unknown request id {request_id!r}")
    self.request_id = request_id


class RemoteError(LinkError):
  """The device answered a call without a `result`.

  The device's error envelope has not been observed yet, so the whole response is kept in
  `response` for inspection.
  """

  def __init__(self, request_id: int, method: str, response: dict):
    error = response.get("error", response)
    super().__init__(f"'{method}' (id {request_id}) failed on the device: {error}")
    self.request_id = request_id
    self.method = method
    self.response = response
