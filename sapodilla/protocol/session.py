"""JSON request/response session on top of the link.

Requests look like `{"id": 12, "method": "get-prop", "params": [...]}`; the device answers with
`{"id": 12, "result": ...}`. The accessory also sends requests of its own, for now only
`event.*` notifications, which are delivered to subscribers and never answered.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set

from sapodilla.protocol.errors import (
  RemoteError,
  SequenceAnomaly,
  UnexpectedContent,
  UnsolicitedResponse,
)
from sapodilla.protocol.fragments import Package

logger = logging.getLogger(__name__)

EVENT_PREFIX = "event."
EVENT_PRINT_JOB_FINISH = "event.print-job-finish"
EVENT_COMBO_JOB_FINISH = "event.combo-job-finish"
ANY_EVENT = "*"

# Sends one JSON request. The callable receives the builder, which turns the allocated message number
# into the payload, and returns the message number once every packet has been written.
SendMessage = Callable[[Callable[[int], bytes]], Awaitable[int]]


class JobKind(enum.Enum):
  PRINT = "print"
  COMBO = "combo"


@dataclass(frozen=True)
class JobHandle:
  """A job the device accepted. Its id tags the job's data packages."""

  job_id: int
  kind: JobKind


@dataclass
class PendingCall:
  request_id: int
  method: str
  submitted_at: float
  future: "asyncio.Future[Any]" = field(repr=False)


@dataclass(frozen=True)
class Event:
  method: str
  params: Any
  message_number: int


EventCallback = Callable[[Event], Optional[Awaitable[None]]]


def _is_error_response(message: dict) -> bool:
  # The error envelope has not been observed; anything without a result is treated as a failure.
  return "result" not in message


class JsonRpcSession:
  def __init__(self, send_message: SendMessage):
    self._send_message = send_message
    self._pending: Dict[int, PendingCall] = {}
    self._subscribers: Dict[str, List[EventCallback]] = {}
    self._callback_tasks: Set["asyncio.Future[Any]"] = set()

  @property
  def pending_calls(self) -> List[PendingCall]:
    return list(self._pending.values())

  # calls

  async def submit(self, method: str, params: Any = None) -> PendingCall:
    """Send a request and register it. Returns as soon as the request is on the wire.

    The returned `PendingCall.future` resolves with the `result` of the matching response or fails
    with `RemoteError`.
    """

    loop = asyncio.get_running_loop()
    pending: Optional[PendingCall] = None

    def build(request_id: int) -> bytes:
      nonlocal pending
      if request_id in self._pending:
        raise SequenceAnomaly(
          f"request id {request_id} is still pending", message_number=request_id,
          kind=SequenceAnomaly.DUPLICATE,
        )
      pending = PendingCall(
        request_id=request_id,
        method=method,
        submitted_at=time.monotonic(),
        future=loop.create_future(),
      )
      self._pending[request_id] = pending
      request = {"id": request_id, "method": method, "params": [] if params is None else params}
      return json.dumps(request, separators=(",", ":")).encode("utf-8")

    try:
      await self._send_message(build)
    except BaseException:
      if pending is not None:
        self._pending.pop(pending.request_id, None)
        pending.future.cancel()
      raise

    assert pending is not None
    logger.debug("sent '%s' as request %d", method, pending.request_id)
    return pending

  async def call(self, method: str, params: Any = None, timeout: Optional[float] = None) -> Any:
    """Send a request and wait for its result.

    Raises:
      RemoteError: the device answered without a result.
      TimeoutError: no response within `timeout` seconds. The call is forgotten, so a late response
        is reported as unsolicited instead of being delivered.
    """

    pending = await self.submit(method, params)
    try:
      return await asyncio.wait_for(pending.future, timeout=timeout)
    except asyncio.TimeoutError as e:
      raise TimeoutError(
        f"no response to '{method}' (id {pending.request_id}) within {timeout}s"
      ) from e
    finally:
      # no-op when the response already resolved the call
      self._pending.pop(pending.request_id, None)

  def cancel(self, request_id: int) -> bool:
    """Forget a pending call and cancel its future. Returns whether the call was pending."""
    pending = self._pending.pop(request_id, None)
    if pending is None:
      return False
    pending.future.cancel()
    logger.debug("cancelled request %d ('%s')", request_id, pending.method)
    return True

  def close(self, exc: Optional[BaseException] = None) -> None:
    """Fail every pending call, e.g. because the link went down."""
    pending, self._pending = self._pending, {}
    for call in pending.values():
      if call.future.done():
        continue
      if exc is None:
        call.future.cancel()
      else:
        call.future.set_exception(exc)

  # typed calls

  async def get_prop(self, names: Sequence[str], timeout: Optional[float] = None) -> List[Any]:
    """Read device properties. The result lists one value per requested name."""
    result = await self.call("get-prop", list(names), timeout=timeout)
    if not isinstance(result, list):
      raise UnexpectedContent(f"get-prop returned {type(result).__name__}, expected a list")
    return result

  async def get_job_info(self, job_id: int, timeout: Optional[float] = None) -> Dict[str, Any]:
    result = await self.call("get-job-info", {"job-id": job_id}, timeout=timeout)
    if not isinstance(result, dict):
      raise UnexpectedContent(f"get-job-info returned {type(result).__name__}, expected an object")
    return result

  async def print_job(self, descriptor: Dict[str, Any], timeout: Optional[float] = None) -> JobHandle:
    result = await self.call("print-job", descriptor, timeout=timeout)
    return self._job_handle(result, JobKind.PRINT)

  async def combo_job(
    self,
    print_descriptor: Dict[str, Any],
    cut_descriptor: Dict[str, Any],
    timeout: Optional[float] = None,
  ) -> JobHandle:
    params = [
      {"method": "print-job", "params": print_descriptor},
      {"method": "cut-job", "params": cut_descriptor},
    ]
    result = await self.call("combo-job", params, timeout=timeout)
    return self._job_handle(result, JobKind.COMBO)

  @staticmethod
  def _job_handle(result: Any, kind: JobKind) -> JobHandle:
    if not isinstance(result, dict) or not isinstance(result.get("job-id"), int):
      raise UnexpectedContent(f"{kind.value} job result carries no job id: {result!r}")
    return JobHandle(job_id=result["job-id"], kind=kind)

  # inbound

  def handle_response(self, package: Package) -> None:
    message = package.json()
    if not isinstance(message, dict) or "id" not in message:
      raise UnexpectedContent(f"response #{package.message_number} has no id")

    if not isinstance(message["id"], int):
      raise UnexpectedContent(f"response #{package.message_number} has id {message['id']!r}")
    pending = self._pending.pop(message["id"], None)
    if pending is None:
      raise UnsolicitedResponse(message["id"])
    if pending.future.done():
      logger.debug("dropping response to '%s' (id %d), the caller already gave up", pending.method,
                   pending.request_id)
      return

    elapsed = time.monotonic() - pending.submitted_at
    if _is_error_response(message):
      logger.warning("'%s' (id %d) failed after %.2fs: %s", pending.method, pending.request_id,
                     elapsed, message)
      pending.future.set_exception(RemoteError(pending.request_id, pending.method, message))
    else:
      logger.debug("'%s' (id %d) answered after %.2fs", pending.method, pending.request_id, elapsed)
      pending.future.set_result(message["result"])

  def handle_request(self, package: Package) -> None:
    message = package.json()
    method = message.get("method") if isinstance(message, dict) else None
    if not isinstance(method, str):
      raise UnexpectedContent(f"request #{package.message_number} has no method")
    if not method.startswith(EVENT_PREFIX):
      raise UnexpectedContent(f"accessory sent unsupported command '{method}'")

    event = Event(method=method, params=message.get("params"), message_number=package.message_number)
    callbacks = self._subscribers.get(method, []) + self._subscribers.get(ANY_EVENT, [])
    if len(callbacks) == 0:
      logger.info("no subscriber for %s", method)
    for callback in callbacks:
      self._run_callback(callback, event)

  def _run_callback(self, callback: EventCallback, event: Event) -> None:
    try:
      result = callback(event)
    except Exception:  # pylint: disable=broad-except
      logger.exception("subscriber for %s failed", event.method)
      return
    if inspect.isawaitable(result):
      task = asyncio.ensure_future(result)
      self._callback_tasks.add(task)
      task.add_done_callback(self._callback_done)

  def _callback_done(self, task: "asyncio.Future[Any]") -> None:
    self._callback_tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
      logger.error("event subscriber failed", exc_info=task.exception())

  # events

  def subscribe(self, method: str, callback: EventCallback) -> Callable[[], None]:
    """Deliver `method` events (or every event, for `"*"`) to `callback`.

    `callback` may be a plain function or a coroutine function. Returns a function that removes the
    subscription again.
    """

    if method != ANY_EVENT and not method.startswith(EVENT_PREFIX):
      raise ValueError(f"'{method}' is not an event method")
    self._subscribers.setdefault(method, []).append(callback)
    return lambda: self.unsubscribe(method, callback)

  def unsubscribe(self, method: str, callback: EventCallback) -> None:
    callbacks = self._subscribers.get(method, [])
    if callback in callbacks:
      callbacks.remove(callback)
