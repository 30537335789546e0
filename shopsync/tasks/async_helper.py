import asyncio
from functools import wraps

from shopsync.tasks.celery_app import celery_app


def run_async(coro):
    """
    Runs a coroutine inside a valid or new event loop.
    """
    try:
        loop = asyncio.get_event_loop()
        if loop.is_closed():
            raise RuntimeError
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def celery_async_task(bind=True, max_retries=3, default_retry_delay=60 * 5):
    """
    Decorator to define a Celery task that runs a coroutine with retry support.

    Usage:
        @celery_async_task()
        async def purge_activity_logs(self, days=None):
            async with AsyncSessionLocal() as db:
                return await purge_old_logs(db, days)
    """
    def decorator(async_func):
        task_decorator = celery_app.task(
            bind=bind,
            max_retries=max_retries,
            default_retry_delay=default_retry_delay,
        )

        @task_decorator
        @wraps(async_func)
        def wrapper(self, *args, **kwargs):
            try:
                return run_async(async_func(self, *args, **kwargs))
            except Exception as exc:
                raise self.retry(exc=exc)

        return wrapper

    return decorator
