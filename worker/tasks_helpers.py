import asyncio
from typing import Any, Coroutine
from app.models import ProcessingStatus

def run_orchestration(coro: Coroutine[Any, Any, Any]) -> Any:
    # Each Celery task gets its own event loop
    return asyncio.run(coro)

def status_value(status: ProcessingStatus | None) -> str | None:
    return status.value if status is not None else None
