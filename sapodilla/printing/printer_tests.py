import asyncio
import json
import unittest
import unittest.mock
from typing import Any, Dict, List

from sapodilla.printing.chatterbox import PrinterChatterboxBackend
from sapodilla.printing.jobs import JobState, PrinterState
from sapodilla.printing.pixcut_backend import PixCutBackend
from sapodilla.printing.printer import Printer
from sapodilla.protocol.constants import ContentType, EncodingType, InteractionType
from sapodilla.protocol.fragments import FragmentAssembler, Package, split
from sapodilla.protocol.packets import Packet
from sapodilla.protocol.session import EVENT_PRINT_JOB_FINISH, JobKind
from sapodilla.protocol.stream import StreamDecoder


class SimulatedPrinterPort:
  """Stands in for the serial port and answers requests like the printer does."""

  def __init__(self, job_id: int = 77):
    self.job_id = job_id
    self.job_state = JobState.COMPLETED
    self.properties: Dict[str, Any] = {
      "model": "DHP700",
      "printer-state": "20",
      "printer-sub-state": "2000",
      "printer-state-alerts": [],
      "auto-off-interval": {"auto-off-interval": 3600},
    }
    self.requests: List[dict] = []
    self.uploads: List[Package] = []
    self._decoder = StreamDecoder()
    self._assembler = FragmentAssembler()
    self._incoming: "asyncio.Queue[bytes]" = asyncio.Queue()
    self._event_number = 1000

  async def setup(self):
    pass

  async def stop(self):
    pass

  async def reset_input_buffer(self):
    pass

  async def write(self, data: bytes):
    for packet in self._decoder.feed(data):
      assert isinstance(packet, Packet), packet
      package = self._assembler.ingest(packet)
      if package is None:
        continue
      if package.content_type == ContentType.DATA:
        self.uploads.append(package)
      else:
        self._answer(package.message_number, package.json())

  async def read_available(self, max_bytes: int = 4096) -> bytes:
    try:
      return await asyncio.wait_for(self._incoming.get(), timeout=0.01)
    except asyncio.TimeoutError:
      return b""

  def _send(self, message: dict, number: int, interaction: InteractionType):
    for chunk in split(json.dumps(message).encode(), ContentType.MESSAGE):
      self._incoming.put_nowait(Packet(
        content_type=ContentType.MESSAGE,
        interaction=interaction,
        encoding=EncodingType.JSON,
        terminal_id=number,
        message_number=number,
        package_total=chunk.package_total,
        package_index=chunk.package_index,
        is_multi_package=chunk.is_multi_package,
        payload=chunk.data,
      ).encode())

  def _answer(self, number: int, request: dict):
    self.requests.append(request)
    method = request["method"]
    if method == "get-prop":
      result: Any = [self.properties.get(name, "") for name in request["params"]]
    elif method in ("print-job", "combo-job"):
      result = {"job-id": self.job_id}
    elif method == "get-job-info":
      result = {"job-id": request["params"]["job-id"], "job-state": int(self.job_state)}
    else:
      result = {}
    self._send({"id": request["id"], "result": result}, number, InteractionType.RESPONSE)

  def send_event(self, method: str, params: dict):
    self._event_number += 1
    self._send({"id": self._event_number, "method": method, "params": params},
               self._event_number, InteractionType.REQUEST)


class PixCutPrinterTests(unittest.IsolatedAsyncioTestCase):
  async def asyncSetUp(self):
    self.port = SimulatedPrinterPort()
    self.backend = PixCutBackend(port="/dev/rfcomm0", call_timeout=2)
    self.backend.io = self.port  # type: ignore[assignment]
    self.printer = Printer(backend=self.backend)
    await self.printer.setup()

  async def asyncTearDown(self):
    await self.printer.stop()

  async def test_get_properties(self):
    properties = await self.printer.get_properties(["model", "auto-off-interval"])
    self.assertEqual(properties, {"model": "DHP700", "auto-off-interval": 3600})

  async def test_get_status(self):
    status = await self.printer.get_status()
    self.assertEqual(status.state, PrinterState.IDLE)
    self.assertEqual(status.alerts, [])

  async def test_print_photo(self):
    image = bytes(i % 256 for i in range(3000))
    progress = unittest.mock.Mock()
    job = await self.printer.print_photo(image, copies=2, progress=progress)
    self.assertEqual((job.job_id, job.kind), (77, JobKind.PRINT))

    (request,) = self.port.requests
    self.assertEqual(request["method"], "print-job")
    self.assertEqual(request["params"]["file-size"], 3000)
    self.assertEqual(request["params"]["copies"], 2)
    self.assertEqual(request["params"]["media-size"], 5012)

    (upload,) = self.port.uploads
    self.assertEqual((upload.job_id, upload.payload), (77, image))
    self.assertEqual(progress.call_args.args, (3000, 3000))

  async def test_print_and_cut(self):
    job = await self.printer.print_and_cut(b"jpeg" * 500, b"IN VER0.1.0 KP42 U0,0 @ ")
    self.assertEqual(job.kind, JobKind.COMBO)

    (request,) = self.port.requests
    self.assertEqual(request["method"], "combo-job")
    self.assertEqual([p["method"] for p in request["params"]], ["print-job", "cut-job"])
    self.assertEqual(request["params"][0]["params"]["media-size"], 5013)
    self.assertEqual(request["params"][1]["params"]["document-format"], 18)

    self.assertEqual([u.payload for u in self.port.uploads],
                     [b"IN VER0.1.0 KP42 U0,0 @ ", b"jpeg" * 500])
    self.assertEqual({u.job_id for u in self.port.uploads}, {77})

  async def test_wait_for_job_polls(self):
    info = await self.printer.wait_for_job(77, poll_interval=0.01)
    self.assertEqual(info.job_state, JobState.COMPLETED)
    self.assertEqual(self.port.requests[0]["params"], {"job-id": 77})

  async def test_wait_for_job_finish_event(self):
    self.port.job_state = JobState.PROCESSING
    wait = asyncio.create_task(self.printer.wait_for_job(77, poll_interval=30, timeout=5))
    while len(self.port.requests) == 0:
      await asyncio.sleep(0.01)
    self.port.send_event(EVENT_PRINT_JOB_FINISH, {"job-id": 77, "job-state": 9})
    info = await asyncio.wait_for(wait, timeout=2)
    self.assertEqual(info.job_state, JobState.COMPLETED)
    self.assertEqual(len(self.port.requests), 1)

  async def test_wait_for_job_timeout(self):
    self.port.job_state = JobState.PROCESSING
    with self.assertRaises(TimeoutError):
      await self.printer.wait_for_job(77, poll_interval=0.01, timeout=0.05)

  async def test_event_listener(self):
    received = asyncio.Event()
    self.printer.add_event_listener("*", lambda event: received.set())
    self.port.send_event("event.paper-out", {})
    await asyncio.wait_for(received.wait(), timeout=2)


class ChatterboxPrinterTests(unittest.IsolatedAsyncioTestCase):
  async def asyncSetUp(self):
    self.printer = Printer(backend=PrinterChatterboxBackend())
    await self.printer.setup()

  async def test_print_photo(self):
    job = await self.printer.print_photo(b"jpeg")
    info = await self.printer.wait_for_job(job, poll_interval=0.01)
    self.assertEqual(info.job_state, JobState.COMPLETED)
    self.assertEqual(info.transfer_size, 4)

  async def test_status(self):
    status = await self.printer.get_status()
    self.assertEqual(status.state, PrinterState.IDLE)

  async def test_needs_setup(self):
    printer = Printer(backend=PrinterChatterboxBackend())
    with self.assertRaises(RuntimeError):
      await printer.get_status()


class BackendSerializationTests(unittest.TestCase):
  def test_serialize(self):
    backend = PixCutBackend(port="/dev/rfcomm0", key=b"\x01\x02")
    data = backend.serialize()
    self.assertEqual(data["type"], "PixCutBackend")
    self.assertEqual(data["key"], "0102")
    restored = PixCutBackend.deserialize(data)
    self.assertIsInstance(restored, PixCutBackend)
    self.assertEqual(restored.key, b"\x01\x02")

  def test_printer_serialize(self):
    printer = Printer(backend=PrinterChatterboxBackend(model="DHP700"))
    self.assertEqual(printer.serialize(), {
      "type": "Printer",
      "backend": {"type": "PrinterChatterboxBackend", "model": "DHP700", "first_job_id": 1},
    })
