import unittest
import unittest.mock

from sapodilla.protocol.constants import ContentType, EncodingType, InteractionType
from sapodilla.protocol.errors import UnexpectedContent
from sapodilla.protocol.fragments import Package
from sapodilla.protocol.router import MessageRouter


def _package(content_type=ContentType.MESSAGE, interaction=InteractionType.RESPONSE,
             encoding=EncodingType.JSON, payload=b"{}", job_id=None) -> Package:
  return Package(
    message_number=3,
    content_type=content_type,
    interaction=interaction,
    encoding=encoding,
    payload=payload,
    job_id=job_id,
  )


class TestMessageRouter(unittest.TestCase):
  def setUp(self):
    self.on_response = unittest.mock.Mock()
    self.on_request = unittest.mock.Mock()
    self.router = MessageRouter(on_response=self.on_response, on_request=self.on_request)

  def test_response(self):
    package = _package()
    self.router.dispatch(package)
    self.on_response.assert_called_once_with(package)
    self.on_request.assert_not_called()

  def test_request(self):
    package = _package(interaction=InteractionType.REQUEST)
    self.router.dispatch(package)
    self.on_request.assert_called_once_with(package)
    self.on_response.assert_not_called()

  def test_binary_message(self):
    with self.assertRaises(UnexpectedContent):
      self.router.dispatch(_package(encoding=EncodingType.BINARY))
    self.on_response.assert_not_called()

  def test_data_without_consumer(self):
    with self.assertRaises(UnexpectedContent):
      self.router.dispatch(_package(ContentType.DATA, encoding=EncodingType.BINARY, job_id=1))

  def test_data_consumer(self):
    consumer = unittest.mock.Mock()
    self.router.set_data_consumer(consumer)
    package = _package(ContentType.DATA, encoding=EncodingType.BINARY, job_id=1)
    self.router.dispatch(package)
    consumer.assert_called_once_with(package)

    self.router.set_data_consumer(None)
    with self.assertRaises(UnexpectedContent):
      self.router.dispatch(package)
