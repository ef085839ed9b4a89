import asyncio
import json
import unittest
import unittest.mock
from typing import Callable, List

from sapodilla.protocol.constants import ContentType, EncodingType, InteractionType
from sapodilla.protocol.errors import (
  RemoteError,
  SequenceAnomaly,
  UnexpectedContent,
  UnsolicitedResponse,
)
from sapodilla.protocol.fragments import Package
from sapodilla.protocol.session import (
  EVENT_PRINT_JOB_FINISH,
  Event,
  JobHandle,
  JobKind,
  JsonRpcSession,
)


def _message(interaction: InteractionType, message: dict, number: int = 0) -> Package:
  return Package(
    message_number=number or message.get("id", 1),
    content_type=ContentType.MESSAGE,
    interaction=interaction,
    encoding=EncodingType.JSON,
    payload=json.dumps(message).encode(),
  )


def response(message: dict) -> Package:
  return _message(InteractionType.RESPONSE, message)


def event(method: str, params, number: int = 500) -> Package:
  return _message(InteractionType.REQUEST, {"id": number, "method": method, "params": params},
                  number=number)


class SessionTestCase(unittest.IsolatedAsyncioTestCase):
  async def asyncSetUp(self):
    self.sent: List[dict] = []
    self.next_number = 1
    self.session = JsonRpcSession(self._send_message)

  async def _send_message(self, build: Callable[[int], bytes]) -> int:
    number = self.next_number
    self.next_number += 1
    self.sent.append(json.loads(build(number)))
    return number


class TestCalls(SessionTestCase):
  async def test_get_prop(self):
    task = asyncio.create_task(self.session.get_prop(["printer-state", "auto-off-interval"]))
    await asyncio.sleep(0)
    self.assertEqual(
      self.sent, [{"id": 1, "method": "get-prop", "params": ["printer-state", "auto-off-interval"]}]
    )
    self.session.handle_response(response({"id": 1, "result": ["10", {"auto-off-interval": 3600}]}))
    self.assertEqual(await task, ["10", {"auto-off-interval": 3600}])
    self.assertEqual(self.session.pending_calls, [])

  async def test_default_params(self):
    task = asyncio.create_task(self.session.call("resume-printer"))
    await asyncio.sleep(0)
    self.assertEqual(self.sent, [{"id": 1, "method": "resume-printer", "params": []}])
    self.session.handle_response(response({"id": 1, "result": {}}))
    self.assertEqual(await task, {})

  async def test_unique_ids(self):
    calls = [await self.session.submit("get-prop", ["model"]) for _ in range(5)]
    ids = [c.request_id for c in calls]
    self.assertEqual(len(set(ids)), 5)
    self.assertEqual(sorted(p.request_id for p in self.session.pending_calls), ids)

  async def test_out_of_order_responses(self):
    first = await self.session.submit("get-prop", ["model"])
    second = await self.session.submit("get-prop", ["serial-number"])
    self.session.handle_response(response({"id": second.request_id, "result": ["SN"]}))
    self.session.handle_response(response({"id": first.request_id, "result": ["DHP700"]}))
    self.assertEqual(await first.future, ["DHP700"])
    self.assertEqual(await second.future, ["SN"])

  async def test_remote_error(self):
    task = asyncio.create_task(self.session.call("get-job-info", {"job-id": 3}))
    await asyncio.sleep(0)
    self.session.handle_response(response({"id": 1, "error": {"code": -1, "message": "no job"}}))
    with self.assertRaises(RemoteError) as ctx:
      await task
    self.assertEqual(ctx.exception.request_id, 1)
    self.assertEqual(ctx.exception.method, "get-job-info")
    self.assertEqual(ctx.exception.response["error"]["code"], -1)

  async def test_response_without_result_is_an_error(self):
    pending = await self.session.submit("get-prop", ["model"])
    self.session.handle_response(response({"id": pending.request_id}))
    with self.assertRaises(RemoteError):
      await pending.future

  async def test_unsolicited_response(self):
    pending = await self.session.submit("get-prop", ["model"])
    with self.assertRaises(UnsolicitedResponse):
      self.session.handle_response(response({"id": 99, "result": []}))
    self.assertFalse(pending.future.done())

  async def test_response_without_id(self):
    with self.assertRaises(UnexpectedContent):
      self.session.handle_response(response({"result": []}))

  async def test_timeout_removes_pending_call(self):
    with self.assertRaises(TimeoutError):
      await self.session.call("get-prop", ["model"], timeout=0.01)
    self.assertEqual(self.session.pending_calls, [])
    with self.assertRaises(UnsolicitedResponse):
      self.session.handle_response(response({"id": 1, "result": ["late"]}))

  async def test_cancelled_call_removes_pending_call(self):
    task = asyncio.create_task(self.session.call("get-prop", ["model"]))
    await asyncio.sleep(0)
    task.cancel()
    with self.assertRaises(asyncio.CancelledError):
      await task
    self.assertEqual(self.session.pending_calls, [])

  async def test_cancel(self):
    pending = await self.session.submit("get-prop", ["model"])
    self.assertTrue(self.session.cancel(pending.request_id))
    self.assertFalse(self.session.cancel(pending.request_id))
    self.assertTrue(pending.future.cancelled())

  async def test_response_to_future_cancelled_by_caller(self):
    pending = await self.session.submit("get-prop", ["model"])
    pending.future.cancel()
    self.session.handle_response(response({"id": pending.request_id, "result": ["DHP700"]}))
    self.assertEqual(self.session.pending_calls, [])
    self.assertTrue(pending.future.cancelled())

  async def test_send_failure_removes_pending_call(self):
    async def failing_send(build):
      build(1)
      raise OSError("port closed")

    session = JsonRpcSession(failing_send)
    with self.assertRaises(OSError):
      await session.call("get-prop", ["model"])
    self.assertEqual(session.pending_calls, [])

  async def test_reused_id(self):
    async def stuck_send(build):
      return json.loads(build(1))["id"]

    session = JsonRpcSession(stuck_send)
    await session.submit("get-prop", ["model"])
    with self.assertRaises(SequenceAnomaly):
      await session.submit("get-prop", ["model"])
    self.assertEqual(len(session.pending_calls), 1)

  async def test_close(self):
    pending = await self.session.submit("get-prop", ["model"])
    self.session.close(ConnectionError("gone"))
    with self.assertRaises(ConnectionError):
      await pending.future
    self.assertEqual(self.session.pending_calls, [])


class TestTypedCalls(SessionTestCase):
  async def test_get_job_info(self):
    task = asyncio.create_task(self.session.get_job_info(7))
    await asyncio.sleep(0)
    self.assertEqual(self.sent[0]["params"], {"job-id": 7})
    self.session.handle_response(response({"id": 1, "result": {"job-id": 7, "job-state": 9}}))
    self.assertEqual(await task, {"job-id": 7, "job-state": 9})

  async def test_get_prop_needs_list(self):
    task = asyncio.create_task(self.session.get_prop(["model"]))
    await asyncio.sleep(0)
    self.session.handle_response(response({"id": 1, "result": "DHP700"}))
    with self.assertRaises(UnexpectedContent):
      await task

  async def test_print_job(self):
    task = asyncio.create_task(self.session.print_job({"copies": 1}))
    await asyncio.sleep(0)
    self.assertEqual(self.sent[0]["method"], "print-job")
    self.session.handle_response(response({"id": 1, "result": {"job-id": 42}}))
    self.assertEqual(await task, JobHandle(job_id=42, kind=JobKind.PRINT))

  async def test_combo_job(self):
    task = asyncio.create_task(self.session.combo_job({"copies": 1}, {"copies": 1}))
    await asyncio.sleep(0)
    self.assertEqual(self.sent[0]["method"], "combo-job")
    self.assertEqual(self.sent[0]["params"], [
      {"method": "print-job", "params": {"copies": 1}},
      {"method": "cut-job", "params": {"copies": 1}},
    ])
    self.session.handle_response(response({"id": 1, "result": {"job-id": 43}}))
    self.assertEqual(await task, JobHandle(job_id=43, kind=JobKind.COMBO))

  async def test_job_result_without_id(self):
    task = asyncio.create_task(self.session.print_job({"copies": 1}))
    await asyncio.sleep(0)
    self.session.handle_response(response({"id": 1, "result": {}}))
    with self.assertRaises(UnexpectedContent):
      await task


class TestEvents(SessionTestCase):
  async def test_subscriber(self):
    callback = unittest.mock.Mock(return_value=None)
    self.session.subscribe(EVENT_PRINT_JOB_FINISH, callback)
    self.session.handle_request(event(EVENT_PRINT_JOB_FINISH, {"job-id": 1, "job-state": 9}))
    callback.assert_called_once_with(
      Event(method=EVENT_PRINT_JOB_FINISH, params={"job-id": 1, "job-state": 9}, message_number=500)
    )
    self.assertEqual(self.sent, [])  # events are not answered

  async def test_other_events_not_delivered(self):
    callback = unittest.mock.Mock(return_value=None)
    self.session.subscribe(EVENT_PRINT_JOB_FINISH, callback)
    self.session.handle_request(event("event.combo-job-finish", {}))
    callback.assert_not_called()

  async def test_wildcard(self):
    callback = unittest.mock.Mock(return_value=None)
    self.session.subscribe("*", callback)
    self.session.handle_request(event("event.paper-out", {}))
    callback.assert_called_once()

  async def test_unsubscribe(self):
    callback = unittest.mock.Mock(return_value=None)
    unsubscribe = self.session.subscribe(EVENT_PRINT_JOB_FINISH, callback)
    unsubscribe()
    self.session.handle_request(event(EVENT_PRINT_JOB_FINISH, {}))
    callback.assert_not_called()

  async def test_failing_subscriber(self):
    failing = unittest.mock.Mock(side_effect=RuntimeError("boom"))
    working = unittest.mock.Mock(return_value=None)
    self.session.subscribe(EVENT_PRINT_JOB_FINISH, failing)
    self.session.subscribe(EVENT_PRINT_JOB_FINISH, working)
    with self.assertLogs("sapodilla.protocol.session", level="ERROR"):
      self.session.handle_request(event(EVENT_PRINT_JOB_FINISH, {}))
    working.assert_called_once()

  async def test_async_subscriber(self):
    received = asyncio.Event()

    async def callback(e: Event):
      received.set()

    self.session.subscribe(EVENT_PRINT_JOB_FINISH, callback)
    self.session.handle_request(event(EVENT_PRINT_JOB_FINISH, {}))
    await asyncio.wait_for(received.wait(), timeout=1)

  async def test_command_from_accessory(self):
    with self.assertRaises(UnexpectedContent):
      self.session.handle_request(event("print-job", {}))

  async def test_subscribe_to_non_event(self):
    with self.assertRaises(ValueError):
      self.session.subscribe("get-prop", unittest.mock.Mock())
