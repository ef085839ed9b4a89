from typing import List, Optional, Type, TypeVar

T = TypeVar("T")


def find_subclass(class_name: str, cls: Type[T]) -> Optional[Type[T]]:
  """Find `cls` or one of its (indirect) subclasses by class name.

  Used to turn the `type` field of a serialized backend, e.g. `"PixCutBackend"`, back into a class.
  Only classes that have been imported can be found.

  Returns:
    The class with the given name, or `None` if no such class exists.
  """

  queue: List[Type[T]] = [cls]
  while len(queue) > 0:
    candidate = queue.pop(0)
    if candidate.__name__ == class_name:
      return candidate
    queue.extend(candidate.__subclasses__())
  return None
