# extractor.py

import io
import json
import re
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union, runtime_checkable

from reqchain.context import RunContext
from reqchain.errors import NilResponse, PathNotFound, ReadResponseBody, ResponseTooLarge
from reqchain.log import logger, preview
from reqchain.transport import HttpResponse

MAX_RESPONSE_BODY_SIZE = 10 * 1024 * 1024 # 10MB

# --- Sentinel Object for Missing Keys ---
_MISSING = object()

_segment_regex = re.compile(r'\[(\d+)\]|([^\[\]]+)')


@runtime_checkable
class JsonExtractor(Protocol):
    def extract(self, json_text: str, path: str) -> Tuple[str, bool]:
        ...


def split_path(path: str) -> List[Union[str, int]]:
    """
    Splits an extraction path into keys and list indexes.
    'data.items[0].id', 'data.items.0.id' and 'a\\.b' (escaped dot) are all accepted.
    """
    parts: List[str] = []
    current = []
    escaped = False
    for ch in path:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == '\\':
            escaped = True
        elif ch == '.':
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))

    segments: List[Union[str, int]] = []
    for part in parts:
        if part == "":
            raise ValueError(f"empty segment in path '{path}'")
        # Bracket indexes only apply when the segment is key[0][1]... shaped
        if '[' in part and re.fullmatch(r'[^\[\]]*(\[\d+\])+', part):
            for match in _segment_regex.finditer(part):
                if match.group(1) is not None:
                    segments.append(int(match.group(1)))
                else:
                    segments.append(match.group(2))
        else:
            segments.append(part)
    return segments


def get_value_at_path(document: Any, path: str) -> Any:
    """
    Walks a decoded JSON document along path.
    Returns the sentinel _MISSING if the path is invalid or does not exist.
    """
    if not path:
        return _MISSING
    try:
        segments = split_path(path)
    except ValueError as e:
        logger.debug(f"Invalid extraction path: {e}")
        return _MISSING

    current = document
    for segment in segments:
        if isinstance(segment, int):
            if not isinstance(current, list) or not 0 <= segment < len(current):
                return _MISSING
            current = current[segment]
        elif isinstance(current, dict):
            if segment not in current:
                return _MISSING
            current = current[segment]
        elif isinstance(current, list):
            if segment == '#':
                current = len(current)
            elif segment.isdigit() and int(segment) < len(current):
                current = current[int(segment)]
            else:
                return _MISSING
        else:
            return _MISSING
    return current


def to_string(value: Any) -> str:
    """Renders an extracted JSON value the way it is substituted into requests."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False)


class PathExtractor:
    """Default JsonExtractor using dotted/bracketed paths."""

    def extract(self, json_text: str, path: str) -> Tuple[str, bool]:
        try:
            document = json.loads(json_text)
        except (json.JSONDecodeError, TypeError):
            return "", False
        value = get_value_at_path(document, path)
        if value is _MISSING:
            return "", False
        return to_string(value), True


class VariableExtractor:
    """Pulls named variables out of an HttpResponse body."""

    def __init__(self, json_extractor: Optional[JsonExtractor] = None, max_body_size: int = MAX_RESPONSE_BODY_SIZE):
        self.json_extractor = json_extractor or PathExtractor()
        self.max_body_size = max_body_size

    def extract_variables(self, ctx: RunContext, response: Optional[HttpResponse], extractions: Dict[str, str]) -> Dict[str, str]:
        """
        Extracts every (variable, path) pair from the response body.
        All-or-nothing: a single missing path raises PathNotFound and nothing is returned.
        """
        ctx.raise_if_done()
        if response is None:
            raise NilResponse("response is nil")

        body = self.read_body(response)
        json_text = body.decode('utf-8', errors='replace')

        variables: Dict[str, str] = {}
        for variable_name, json_path in extractions.items():
            ctx.raise_if_done()
            value, exists = self.json_extractor.extract(json_text, json_path)
            if not exists:
                raise PathNotFound(f"path '{json_path}' not found for variable '{variable_name}'")
            logger.debug(f"Extracted '{json_path}' into variable '{variable_name}': {preview(value)}")
            variables[variable_name] = value
        return variables

    def read_body(self, response: HttpResponse) -> bytes:
        """Reads at most max_body_size bytes, then puts a fresh readable copy back on the response."""
        stream = response.body
        if stream is None:
            raise NilResponse("response has no body")
        try:
            data = stream.read(self.max_body_size)
            extra = stream.read(1)
        except (OSError, ValueError) as e:
            raise ReadResponseBody(f"failed to read response body: {e}") from e
        finally:
            close = getattr(stream, 'close', None)
            if close is not None:
                close()

        if extra:
            raise ResponseTooLarge(f"response body exceeds maximum allowed size of {self.max_body_size} bytes")

        response.body = io.BytesIO(data)
        return data
