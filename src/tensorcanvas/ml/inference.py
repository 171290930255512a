"""Inference engine boundary.

Architecture:
    caller (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> EngineHandle.run -> ONNX Runtime

``open_engine`` creates an ONNX Runtime session and returns an ``EngineHandle``;
holding a handle is what "initialized" means, there is no global flag. The
handle only feeds request tensors in and reads response tensors out. Model
files are supplied by the caller.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import numpy as np
from onnxruntime import GraphOptimizationLevel, InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from tensorcanvas.errors import EngineNotInitializedError, InferenceError
from tensorcanvas.ml.tensor import Tensor

if TYPE_CHECKING:
    from collections.abc import Callable

    from tensorcanvas.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEMAPHORE_TIMEOUT_SECONDS: float = 5.0


class EngineHandle:
    """An open inference session bound to its first input and output."""

    def __init__(self, session: InferenceSession, name: str) -> None:
        self._session: InferenceSession | None = session
        self._name = name
        self._input_name: str = session.get_inputs()[0].name
        self._output_name: str = session.get_outputs()[0].name

    @property
    def name(self) -> str:
        return self._name

    @property
    def input_name(self) -> str:
        return self._input_name

    @property
    def output_name(self) -> str:
        return self._output_name

    @property
    def closed(self) -> bool:
        return self._session is None

    def run(self, tensor: Tensor) -> Tensor:
        """Run one forward pass and return the first output as a Tensor.

        Raises:
            EngineNotInitializedError: If the handle has been closed.
            InferenceError: If the session rejects the input or fails.
        """
        session = self._session
        if session is None:
            raise EngineNotInitializedError(f"Engine '{self._name}' is closed")

        logger.debug("Running %s: %s=%s", self._name, self._input_name, list(tensor.shape))
        try:
            outputs = session.run([self._output_name], tensor.to_feed(self._input_name))
        except Exception as exc:  # noqa: BLE001
            raise InferenceError(f"Inference with '{self._name}' failed: {exc}") from exc

        result = Tensor.from_array(np.asarray(outputs[0]))
        logger.debug("Finished %s: %s=%s", self._name, self._output_name, list(result.shape))
        return result

    def close(self) -> None:
        """Release the session. Later ``run`` calls fail."""
        if self._session is not None:
            self._session = None
            logger.info("Closed engine %s", self._name)

    def __enter__(self) -> EngineHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


PROVIDERS: list[str] = ["CPUExecutionProvider"]


def build_session_options(settings: Settings) -> SessionOptions:
    """CPU session options: fixed thread counts, graph left as exported."""
    opts = SessionOptions()
    opts.intra_op_num_threads = settings.intra_op_threads
    opts.inter_op_num_threads = settings.inter_op_threads
    opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
    opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
    return opts


def open_engine(model_path: str | Path, settings: Settings) -> EngineHandle:
    """Create an ONNX Runtime session for a local model file.

    Raises:
        InferenceError: If the file is missing or the session cannot be created.
    """
    path = Path(model_path)
    if not path.is_file():
        raise InferenceError(f"Model file not found: {path}")

    try:
        session = InferenceSession(
            str(path),
            sess_options=build_session_options(settings),
            providers=PROVIDERS,
        )
    except Exception as exc:  # noqa: BLE001
        raise InferenceError(f"Failed to load model {path.name}: {exc}") from exc

    handle = EngineHandle(session, name=path.stem)
    logger.info(
        "Loaded engine %s (input=%s, output=%s)",
        handle.name,
        handle.input_name,
        handle.output_name,
    )
    return handle


class InferencePool:
    """Manages the semaphore and thread pool for blocking inference calls."""

    def __init__(self, settings: Settings) -> None:
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="onnx-inference",
        )
        self._active_count: int = 0
        self._queue_depth: int = 0
        self._counter_lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Submit a synchronous function to the inference thread pool.

        Acquires the semaphore (with timeout), runs the function in the
        executor, then releases.

        Raises:
            TimeoutError: If the semaphore cannot be acquired within the timeout.
        """
        with self._counter_lock:
            self._queue_depth += 1
        try:
            await asyncio.wait_for(
                self._semaphore.acquire(),
                timeout=SEMAPHORE_TIMEOUT_SECONDS,
            )
        finally:
            with self._counter_lock:
                self._queue_depth -= 1

        with self._counter_lock:
            self._active_count += 1
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, func, *args)
        finally:
            self._semaphore.release()
            with self._counter_lock:
                self._active_count -= 1

    async def infer(self, engine: EngineHandle, tensor: Tensor) -> Tensor:
        """Run ``engine`` on ``tensor`` inside the pool.

        Raises:
            InferenceError: If no inference slot frees up within the timeout.
        """
        try:
            return await self.run(engine.run, tensor)
        except TimeoutError as exc:
            raise InferenceError(
                f"Timed out after {SEMAPHORE_TIMEOUT_SECONDS}s waiting for an inference slot for '{engine.name}'"
            ) from exc

    @property
    def active_count(self) -> int:
        """Number of currently running inference tasks."""
        with self._counter_lock:
            return self._active_count

    @property
    def queue_depth(self) -> int:
        """Number of requests waiting for a semaphore slot."""
        with self._counter_lock:
            return self._queue_depth

    def shutdown(self) -> None:
        """Shut down the thread pool executor."""
        self._executor.shutdown(wait=True)
