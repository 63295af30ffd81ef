# processor.py

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from reqchain.config import RequestSpec, RunConfig
from reqchain.context import RunContext
from reqchain.errors import (
    DeadlineExceeded,
    EmptyVariableName,
    ReqChainError,
    RequestCreation,
    RequestExecution,
    RunCancelled,
    VariableExtraction,
)
from reqchain.extractor import VariableExtractor
from reqchain.factory import RequestFactory
from reqchain.log import logger
from reqchain.transport import HttpClient, HttpResponse
from reqchain.variables import VariableStore


@dataclass
class ExecutionResult:
    status_code: int
    variables: Dict[str, str] = field(default_factory=dict)
    success: bool = True


# collector(name, method, url, status_code, error, duration_seconds, variables)
ResultCollector = Callable[[str, str, str, int, Optional[BaseException], float, Optional[Dict[str, str]]], None]


def notify_collector(
    collector: Optional[ResultCollector],
    name: str,
    method: str,
    url: str,
    status_code: int,
    error: Optional[BaseException],
    duration: float,
    variables: Optional[Dict[str, str]] = None,
):
    """Invokes the result collector if one is set. A failing collector is logged and otherwise ignored."""
    if collector is None:
        return
    try:
        collector(name, method, url, status_code, error, duration, variables)
    except Exception as cb_err:
        logger.error(f"Error during result collector callback for request '{name}': {cb_err}")


async def send_request(ctx: RunContext, factory: RequestFactory, client: HttpClient, config: RunConfig, spec: RequestSpec) -> HttpResponse:
    """
    Builds a request through the factory and sends it through the client.
    Factory failures raise RequestCreation, client failures RequestExecution.
    """
    ctx.raise_if_done()
    try:
        request = factory.create_from_config(config, spec)
    except Exception as e:
        raise RequestCreation(f"failed to create request '{spec.name}': {e}") from e

    request.with_context(ctx)
    try:
        return await client.do(request)
    except Exception as e:
        raise RequestExecution(f"request execution failed for {request.method} {request.url}: {type(e).__name__}: {e}") from e


class RequestProcessor:
    """Per-request pipeline of a chain run: substitute variables, send, extract."""

    def __init__(
        self,
        factory: RequestFactory,
        client: HttpClient,
        store: VariableStore,
        extractor: Optional[VariableExtractor] = None,
    ):
        self.factory = factory
        self.client = client
        self.store = store
        self.extractor = extractor or VariableExtractor()

    def prepare_request(self, spec: RequestSpec) -> RequestSpec:
        """Returns a copy of spec with variables resolved in path, headers and the populated body."""
        prepared = spec.model_copy(deep=True)
        prepared.path = self.store.resolve(spec.path)
        if spec.headers:
            prepared.headers = self.store.resolve_headers(spec.headers)
        if spec.json_body:
            prepared.json_body = self.store.resolve_body(spec.json_body)
        if spec.form_body:
            prepared.form_body = self.store.resolve_body(spec.form_body)
        if spec.raw_body:
            prepared.raw_body = self.store.resolve_body(spec.raw_body)
        return prepared

    async def process_request(self, ctx: RunContext, spec: RequestSpec, config: RunConfig) -> ExecutionResult:
        ctx.raise_if_done()

        prepared = self.prepare_request(spec)
        response = await send_request(ctx, self.factory, self.client, config, prepared)
        result = ExecutionResult(status_code=response.status_code)

        if prepared.extract:
            try:
                # every name is checked before any value is stored
                if any(not name for name in prepared.extract):
                    raise EmptyVariableName("variable name cannot be empty")
                extracted = self.extractor.extract_variables(ctx, response, prepared.extract)
            except (RunCancelled, DeadlineExceeded):
                raise
            except ReqChainError as e:
                result.success = False
                raise VariableExtraction(f"failed to extract variables: {e}", status_code=response.status_code, result=result) from e

            for name, value in extracted.items():
                self.store.set(name, value)
                result.variables[name] = value
            logger.debug(f"Request '{spec.name}': stored {len(extracted)} variable(s): {sorted(extracted)}")

        return result
