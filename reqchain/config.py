# config.py

import tomllib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from reqchain.dependency import DependencyResolver
from reqchain.errors import ConfigInvalid, ReqChainError
from reqchain.log import logger

DEFAULT_CONFIG_FILE = "reqchain.toml"
DEFAULT_TIMEOUT = 30 # seconds

# ---------------------------
# Request / Run Configuration Models
# ---------------------------

class RequestSpec(BaseModel):
    """A single HTTP request description."""
    name: str = Field(..., description="Unique identifier for the request")
    method: str = Field("", description="HTTP method (GET, POST, PUT, etc.)")
    path: str = Field("", description="Endpoint path appended to base_url. Can contain ${variables}.")
    headers: List[str] = Field(default_factory=list, description="Headers in 'Key: Value' form. Can contain ${variables}.")
    raw_body: Optional[str] = Field(None, description="Raw body sent as text/plain")
    form_body: Optional[str] = Field(None, description="Body sent as application/x-www-form-urlencoded")
    json_body: Optional[str] = Field(None, description="Body sent as application/json")
    extract: Dict[str, str] = Field(default_factory=dict, description="Mapping of variable names to JSON paths in the response body (e.g., 'token': 'data.access_token')")
    depends_on: Optional[str] = Field(None, description="Name of the request this one depends on (chain mode only)")

    model_config = ConfigDict(extra="ignore")

    @field_validator('method')
    def normalize_method(cls, v):
        return v.strip().upper()

    @field_validator('headers', mode='before')
    def coerce_headers(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @field_validator('depends_on')
    def empty_dependency_is_none(cls, v):
        if v is not None and v.strip() == "":
            return None
        return v

    def body_variants(self) -> Dict[str, str]:
        """Returns the populated (non-empty) body fields keyed by field name."""
        return {
            field_name: value
            for field_name, value in (('json_body', self.json_body), ('form_body', self.form_body), ('raw_body', self.raw_body))
            if value
        }


class RunConfig(BaseModel):
    """Configuration for one batch or chain run."""
    base_url: str = Field("", description="Base URL prefixed to every request path")
    timeout: int = Field(DEFAULT_TIMEOUT, ge=0, description="Overall run timeout in seconds (0 means the default)")
    concurrency: bool = Field(False, description="Run batch requests through the worker pool")
    ignore_fail: bool = Field(False, description="Record per-request failures without aborting the run")
    requests: List[RequestSpec] = Field(default_factory=list, alias="request", description="Ordered request list")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator('timeout')
    def default_timeout(cls, v):
        return v or DEFAULT_TIMEOUT

    @model_validator(mode='after')
    def check_requests(self) -> 'RunConfig':
        if not self.base_url:
            raise ValueError("base_url is required in config")
        if not self.requests:
            raise ValueError("at least one request must be defined")

        names = set()
        for index, req in enumerate(self.requests):
            if not req.name:
                raise ValueError(f"request at index {index} has no name")
            if req.name in names:
                raise ValueError(f"duplicate request name: {req.name}")
            names.add(req.name)
            if not req.method:
                raise ValueError(f"method is required for request '{req.name}'")
            if not req.path:
                raise ValueError(f"path is required for request '{req.name}'")
            if len(req.body_variants()) > 1:
                raise ValueError(f"multiple body types specified for request '{req.name}'")
            if any(not var_name.strip() for var_name in req.extract):
                raise ValueError(f"empty variable name in extract of request '{req.name}'")

        # Unknown dependencies and cycles are structural errors as well
        try:
            DependencyResolver().build_graph(self.requests)
        except ReqChainError as e:
            raise ValueError(str(e)) from e
        return self

    def url_for(self, spec: RequestSpec) -> str:
        return self.base_url + spec.path


# ---------------------------
# Loading
# ---------------------------

def build_config(data: Union[Mapping[str, Any], RunConfig]) -> RunConfig:
    """Validates a mapping into a RunConfig, raising ConfigInvalid on any violation."""
    if isinstance(data, RunConfig):
        return data
    try:
        return RunConfig.model_validate(data)
    except ValidationError as e:
        messages = "; ".join(err.get('msg', '') for err in e.errors())
        raise ConfigInvalid(f"invalid config: {messages}") from e


def load_config(path: Union[str, Path]) -> RunConfig:
    """Reads a TOML run configuration from disk and validates it."""
    config_path = Path(path).expanduser().resolve()
    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigInvalid(f"failed to read config '{config_path}': {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigInvalid(f"failed to decode TOML '{config_path}': {e}") from e

    config = build_config(data)
    logger.info(f"Config loaded: {config_path} ({len(config.requests)} requests, base_url='{config.base_url}')")
    return config
