import os
import sys
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, NoReturn

from loguru import logger

from php_switch.errors import ProvisionError
from php_switch.models import (
    ImageRef,
    ProvisionFailed,
    ProvisionOutcome,
    ProvisionSucceeded,
    utc_now,
)


def run_operation(
    operation: str, fn: Callable[..., Any], *args: Any
) -> ProvisionOutcome:
    """
    Runs a provisioning call and wraps its result in a ProvisionOutcome.

    Never raises: every exception becomes a `ProvisionFailed`.
    """
    started_at = utc_now()
    try:
        result = fn(*args)
    except ProvisionError as e:
        logger.error(f"❌ {operation} failed: {e}")
        return ProvisionFailed(
            operation=operation,
            stage=e.stage.value,
            error=e.message,
            detail=e.detail,
            started_at=started_at,
            ended_at=utc_now(),
        )
    except Exception as e:
        logger.exception(f"❌ {operation} crashed unexpectedly.")
        return ProvisionFailed(
            operation=operation,
            error=f"{e.__class__.__name__}: {e}",
            started_at=started_at,
            ended_at=utc_now(),
        )

    return ProvisionSucceeded(
        operation=operation,
        message=f"{operation} completed.",
        image=ImageRef(result) if isinstance(result, str) else None,
        started_at=started_at,
        ended_at=utc_now(),
    )


class ProvisioningQueue:
    """
    Serialises provisioning calls on a single worker thread.

    Operations run one at a time in submission order, so two concurrent
    requests never race on the runtime's network/volume/container names.
    Results are delivered through the returned futures and, if given, the
    `on_result` callback (invoked on the worker thread).
    """

    def __init__(
        self, on_result: Callable[[ProvisionOutcome], None] | None = None
    ) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="php-switch"
        )
        self._on_result = on_result
        self._lock = threading.Lock()
        self._futures: list[Future[ProvisionOutcome]] = []

    def __enter__(self) -> "ProvisioningQueue":
        return self

    def __exit__(self, *_: Any) -> None:
        self._executor.shutdown(wait=True)

    def _run(
        self, operation: str, fn: Callable[..., Any], *args: Any
    ) -> ProvisionOutcome:
        outcome = run_operation(operation, fn, *args)
        if self._on_result is not None:
            try:
                self._on_result(outcome)
            except Exception:
                logger.exception(f"Result callback for {operation} raised.")
        return outcome

    @property
    def idle(self) -> bool:
        """True when no submitted operation is still running or waiting."""
        with self._lock:
            return all(f.done() for f in self._futures)

    def submit(
        self, operation: str, fn: Callable[..., Any], *args: Any
    ) -> Future[ProvisionOutcome]:
        """Queue `fn(*args)` and return a future of its outcome."""
        logger.debug(f"Queueing {operation}")
        future = self._executor.submit(self._run, operation, fn, *args)
        with self._lock:
            self._futures = [f for f in self._futures if not f.done()]
            self._futures.append(future)
        return future

    def shutdown(
        self, cleanup: Callable[[], None] | None = None, timeout: float | None = None
    ) -> bool:
        """
        Stops accepting work and cancels operations that have not started.

        If given, `cleanup` runs right away on its own daemon thread, without
        waiting for an operation that is still in flight. The call waits at
        most `timeout` seconds for it.

        The worker thread is not joined. If `idle` is still False afterwards,
        the interpreter will wait for the in-flight operation at exit; callers
        that must leave on time use `exit_now`.

        Returns
        -------
        True if the cleanup finished within the timeout.
        """
        self._executor.shutdown(wait=False, cancel_futures=True)
        if cleanup is None:
            return True

        finished = threading.Event()

        def run_cleanup() -> None:
            try:
                self._run("Shutdown", cleanup)
            finally:
                finished.set()

        threading.Thread(
            target=run_cleanup, name="php-switch-cleanup", daemon=True
        ).start()

        if finished.wait(timeout):
            return True
        logger.warning(
            f"⚠️ Cleanup did not finish within {timeout}s, giving up on it."
        )
        return False


def exit_now(code: int) -> NoReturn:
    """
    Terminates the process immediately with `code`.

    Skips joining executor threads, so an operation stuck in a runtime call
    cannot keep the process alive. Pending log messages are flushed first.
    """
    logger.complete()
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(code)
