# batch.py

import asyncio
import time
from typing import Optional

from reqchain.config import RequestSpec, RunConfig
from reqchain.context import RunContext
from reqchain.errors import ReqChainError, RequestCreation, RequestExecution, RequestFailed
from reqchain.factory import DefaultRequestFactory, RequestFactory
from reqchain.log import logger
from reqchain.processor import ResultCollector, notify_collector, send_request
from reqchain.transport import AiohttpClient, HttpClient, HttpResponse

DEFAULT_MAX_WORKERS = 5

_CLOSED = object() # queue closure marker, one per worker


class ErrorSlot:
    """Set-once error holder: the first offered error is kept, later ones are dropped."""

    def __init__(self):
        self.error: Optional[BaseException] = None

    def offer(self, error: BaseException) -> bool:
        if self.error is not None:
            return False
        self.error = error
        return True


class BatchExecutor:
    """
    Runs a flat list of independent requests, either one after another or through a
    bounded worker pool. No dependency resolution and no variable substitution.
    """

    def __init__(
        self,
        ctx: RunContext,
        factory: Optional[RequestFactory] = None,
        client: Optional[HttpClient] = None,
        *,
        collector: Optional[ResultCollector] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.ctx = ctx
        self.factory = factory or DefaultRequestFactory()
        self.client = client or AiohttpClient()
        self.collector = collector
        self.max_workers = max_workers

    def set_result_collector(self, collector: Optional[ResultCollector]):
        self.collector = collector

    async def execute(self, config: RunConfig):
        if config.concurrency:
            await self.execute_concurrent(config)
        else:
            await self.execute_sequential(config)

    async def execute_simple(self, url: str, method: str, header: str = "", body: str = "") -> HttpResponse:
        """Sends one request built from plain parameters and returns its response."""
        try:
            request = self.factory.create_simple(url, method, header, body)
        except Exception as e:
            raise RequestCreation(f"failed to create request: {e}") from e

        request.with_context(self.ctx)
        start = time.monotonic()
        response, error = None, None
        try:
            response = await self.client.do(request)
        except Exception as e:
            error = RequestExecution(f"request execution failed for {request.method} {url}: {type(e).__name__}: {e}")
            error.__cause__ = e
        duration = time.monotonic() - start

        notify_collector(self.collector, "", request.method, url, response.status_code if response else 0, error, duration)
        if error is not None:
            raise error
        return response

    async def _run_one(self, config: RunConfig, spec: RequestSpec) -> Optional[ReqChainError]:
        """Sends one configured request, reports it and returns the error (if any)."""
        start = time.monotonic()
        response, error = None, None
        try:
            response = await send_request(self.ctx, self.factory, self.client, config, spec)
        except ReqChainError as e:
            error = e
        duration = time.monotonic() - start

        url = config.url_for(spec)
        status_code = response.status_code if response is not None else 0
        notify_collector(self.collector, spec.name, spec.method, url, status_code, error, duration)
        if error is None:
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn(f"Request '{spec.name}' received: {status_code} {spec.method} {url} ({duration * 1000:.2f} ms)")
        else:
            logger.warning(f"Request '{spec.name}' failed: {error}")
        return error

    async def execute_sequential(self, config: RunConfig):
        """
        Runs requests in config order. Once the context is done the remaining items are
        skipped when ignore_fail is set (and the run succeeds), otherwise the context
        error is raised.
        """
        for spec in config.requests:
            if self.ctx.done():
                if config.ignore_fail:
                    logger.debug(f"Context done ({self.ctx.error()}), skipping '{spec.name}' due to ignore_fail=true")
                    continue
                raise self.ctx.error()

            error = await self._run_one(config, spec)
            if error is not None and not config.ignore_fail:
                raise RequestFailed(spec.name, f"batch request failed: {error}") from error

    async def execute_concurrent(self, config: RunConfig):
        """
        Runs requests through min(max_workers, len(requests)) workers sharing one queue.
        Workers never stop each other; only the first failure is kept and it is
        raised after every worker has finished (unless ignore_fail is set).
        """
        request_count = len(config.requests)
        worker_count = max(1, min(self.max_workers, request_count))
        jobs: asyncio.Queue = asyncio.Queue(maxsize=request_count + worker_count)
        error_slot = ErrorSlot()

        async def produce():
            for spec in config.requests:
                if self.ctx.done():
                    break
                await jobs.put(spec)
            for _ in range(worker_count):
                jobs.put_nowait(_CLOSED)

        async def worker(worker_id: int):
            processed = 0
            while True:
                if self.ctx.done():
                    logger.debug(f"Worker {worker_id}: context done, exiting after {processed} jobs")
                    return
                spec = await jobs.get()
                if spec is _CLOSED:
                    logger.debug(f"Worker {worker_id}: queue closed, exiting after {processed} jobs")
                    return
                error = await self._run_one(config, spec)
                processed += 1
                if error is not None and not config.ignore_fail:
                    wrapped = RequestFailed(spec.name, f"batch request failed: {error}")
                    wrapped.__cause__ = error
                    if not error_slot.offer(wrapped):
                        logger.debug(f"Worker {worker_id}: dropping later failure of '{spec.name}'")

        logger.info(f"Starting concurrent batch: {request_count} requests, {worker_count} workers")
        await asyncio.gather(produce(), *(worker(i) for i in range(worker_count)))

        if self.ctx.done():
            raise self.ctx.error()
        if error_slot.error is not None and not config.ignore_fail:
            raise error_slot.error
