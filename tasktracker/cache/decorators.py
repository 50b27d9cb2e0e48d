from functools import wraps
from typing import Callable


def expire_after_write(key_builder: Callable[..., str]):
    """
    Decorator for async service methods that mutate data.

    The wrapped method runs first; only if it returns normally is the key
    produced by key_builder invalidated through ``self.invalidate``. A write
    that raises leaves the cache untouched.
    key_builder receives the same args/kwargs as the method (minus self).
    Example:
      @expire_after_write(lambda owner_id, *_, **__: f"tasks:{owner_id}")
      async def delete_task(self, owner_id, task_id): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            result = await fn(self, *args, **kwargs)
            await self.invalidate(key_builder(*args, **kwargs))
            return result

        return wrapper

    return decorator
