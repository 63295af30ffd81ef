"""reqchain: asynchronous HTTP request orchestration with dependency chains and batch runs."""

__version__ = "0.1.0"

from reqchain.batch import BatchExecutor
from reqchain.chain import ChainExecutor, RunState
from reqchain.config import RequestSpec, RunConfig, build_config, load_config
from reqchain.context import RunContext
from reqchain.dependency import DependencyResolver
from reqchain.extractor import PathExtractor, VariableExtractor
from reqchain.factory import DefaultRequestFactory
from reqchain.log import configure_logging, logger
from reqchain.processor import ExecutionResult, RequestProcessor
from reqchain.transport import AiohttpClient, HttpRequest, HttpResponse
from reqchain.variables import VariableStore

__all__ = [
    "__version__", "logger", "configure_logging",
    "RequestSpec", "RunConfig", "build_config", "load_config",
    "RunContext", "DependencyResolver", "VariableStore",
    "PathExtractor", "VariableExtractor", "DefaultRequestFactory",
    "HttpRequest", "HttpResponse", "AiohttpClient",
    "ExecutionResult", "RequestProcessor",
    "ChainExecutor", "RunState", "BatchExecutor",
]
