# factory.py

import json
from typing import Optional, Protocol, runtime_checkable

from reqchain.config import RequestSpec, RunConfig
from reqchain.errors import ConfigInvalid, InvalidBody, InvalidMethod
from reqchain.transport import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_TEXT,
    HttpRequest,
    is_body_required,
    is_valid_method,
    parse_header,
    parse_headers,
)


@runtime_checkable
class RequestFactory(Protocol):
    """Builds concrete HttpRequest objects."""

    def create_from_config(self, config: RunConfig, spec: RequestSpec) -> HttpRequest:
        ...

    def create_simple(self, url: str, method: str, header: str, body: str) -> HttpRequest:
        ...


def _normalize_method(method: str) -> str:
    upper = (method or "").strip().upper()
    if not is_valid_method(upper):
        raise InvalidMethod(f"invalid HTTP method: {method}")
    return upper


def _json_body(content: str) -> bytes:
    try:
        json.loads(content)
    except json.JSONDecodeError as e:
        raise InvalidBody(f"invalid JSON body: {e}") from e
    return content.encode('utf-8')


class DefaultRequestFactory:
    """Default RequestFactory: validates method, parses headers and attaches the body variant."""

    def create_simple(self, url: str, method: str, header: str = "", body: str = "") -> HttpRequest:
        upper = _normalize_method(method)
        request = HttpRequest(url=url, method=upper)
        if header:
            key, value = parse_header(header)
            request.headers[key] = value
        if is_body_required(upper) and body:
            request.body = _json_body(body)
            request.content_type = CONTENT_TYPE_JSON
        return request

    def create_from_config(self, config: Optional[RunConfig], spec: Optional[RequestSpec]) -> HttpRequest:
        if config is None or spec is None:
            raise ConfigInvalid("configuration is not loadable")

        method = _normalize_method(spec.method)
        request = HttpRequest(
            url=config.url_for(spec),
            method=method,
            headers=parse_headers(spec.headers),
        )

        if is_body_required(method):
            # Precedence mirrors config validation: at most one of these is set.
            if spec.json_body:
                request.body = _json_body(spec.json_body)
                request.content_type = CONTENT_TYPE_JSON
            elif spec.form_body:
                request.body = spec.form_body.encode('utf-8')
                request.content_type = CONTENT_TYPE_FORM
            elif spec.raw_body:
                request.body = spec.raw_body.encode('utf-8')
                request.content_type = CONTENT_TYPE_TEXT

        return request
