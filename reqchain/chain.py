# chain.py

import enum
import time
from typing import Callable, Optional, Set

from reqchain.config import RunConfig
from reqchain.context import RunContext
from reqchain.dependency import DependencyResolver
from reqchain.errors import DeadlineExceeded, ReqChainError, RequestFailed, RunCancelled
from reqchain.extractor import VariableExtractor
from reqchain.factory import DefaultRequestFactory, RequestFactory
from reqchain.log import logger
from reqchain.processor import RequestProcessor, ResultCollector, notify_collector
from reqchain.transport import AiohttpClient, HttpClient
from reqchain.variables import VariableStore


class RunState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


class ChainExecutor:
    """
    Runs requests connected by depends_on, passing extracted variables forward.

    Execution is single-threaded: one request at a time, in the order computed by
    DependencyResolver. A fresh VariableStore is created for every execute() call.
    """

    def __init__(
        self,
        factory: Optional[RequestFactory] = None,
        client: Optional[HttpClient] = None,
        extractor: Optional[VariableExtractor] = None,
        *,
        collector: Optional[ResultCollector] = None,
        store_factory: Callable[[], VariableStore] = VariableStore,
        dependencies_first: bool = False,
    ):
        self.factory = factory or DefaultRequestFactory()
        self.client = client or AiohttpClient()
        self.extractor = extractor or VariableExtractor()
        self.collector = collector
        self.store_factory = store_factory
        self.dependencies_first = dependencies_first
        self.state = RunState.IDLE
        self.store: Optional[VariableStore] = None # store of the latest run

    def set_result_collector(self, collector: Optional[ResultCollector]):
        self.collector = collector

    async def execute(self, ctx: RunContext, config: RunConfig):
        """
        Executes the chain. Raises the structural error (UnknownDependency, CyclicDependency),
        the context error on cancellation, or RequestFailed when a request fails and
        ignore_fail is off.
        """
        self.state = RunState.RUNNING
        resolver = DependencyResolver()
        try:
            resolver.build_graph(config.requests, ctx)
            order = resolver.calculate_execution_order(ctx, dependencies_first=self.dependencies_first)
        except (RunCancelled, DeadlineExceeded):
            self.state = RunState.CANCELLED
            raise
        except ReqChainError as e:
            logger.error(f"Failed to build request dependency graph: {e}")
            self.state = RunState.ABORTED
            raise

        self.store = self.store_factory()
        processor = RequestProcessor(self.factory, self.client, self.store, self.extractor)
        executed: Set[str] = set()

        logger.info(f"Starting chain of {len(order)} requests (ignore_fail={config.ignore_fail})")
        for name in order:
            if ctx.done():
                self.state = RunState.CANCELLED
                err = ctx.error()
                logger.warning(f"Chain stopped before request '{name}': {err}")
                raise err
            if name in executed:
                continue

            try:
                succeeded = await self._process(ctx, processor, resolver.get(name), config)
            except (RunCancelled, DeadlineExceeded) as e:
                self.state = RunState.CANCELLED
                logger.warning(f"Chain stopped during request '{name}': {e}")
                raise
            except RequestFailed:
                self.state = RunState.ABORTED
                raise
            if succeeded:
                executed.add(name)

        self.state = RunState.COMPLETED
        logger.info(f"Chain finished: {len(executed)}/{len(order)} requests succeeded")

    async def _process(self, ctx: RunContext, processor: RequestProcessor, spec, config: RunConfig):
        """Runs one request and reports it. Raises RequestFailed unless ignore_fail is set; returns False when the failure was ignored."""
        start = time.monotonic()
        result, error = None, None
        try:
            result = await processor.process_request(ctx, spec, config)
        except ReqChainError as e:
            error = e
        duration = time.monotonic() - start

        if result is not None:
            status_code = result.status_code
        else:
            status_code = getattr(error, 'status_code', 0)
        notify_collector(
            self.collector,
            spec.name,
            spec.method,
            config.url_for(spec),
            status_code,
            error,
            duration,
            dict(result.variables) if result is not None else {},
        )

        if error is None:
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn(f"Request '{spec.name}' received: {status_code} {spec.method} {config.url_for(spec)} ({duration * 1000:.2f} ms)")
            return True

        if isinstance(error, (RunCancelled, DeadlineExceeded)):
            raise error
        if config.ignore_fail:
            logger.warning(f"Request '{spec.name}' failed: {error}, continuing due to ignore_fail=true")
            return False
        raise RequestFailed(spec.name, str(error)) from error
