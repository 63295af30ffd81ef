# variables.py

import re
from typing import Dict, List, Optional, Tuple

from reqchain.errors import EmptyVariableName
from reqchain.log import logger, preview

MAX_RECURSION_DEPTH = 5
MAX_VALUE_LENGTH = 1000
MAX_BODY_LENGTH = MAX_VALUE_LENGTH * 10

_variable_pattern = re.compile(r"\$\{([^}]+)\}")


class _DepthExceeded(Exception):
    """Internal signal: nested substitution went deeper than MAX_RECURSION_DEPTH."""


class VariableStore:
    """
    Name -> string map with ${name} substitution.

    One store belongs to one chain run. It is not safe for concurrent writers.
    """

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})

    def set(self, name: str, value: str):
        if not name:
            raise EmptyVariableName("variable name cannot be empty")
        self._values[name] = value

    def get(self, name: str) -> Tuple[str, bool]:
        if name in self._values:
            return self._values[name], True
        return "", False

    def snapshot(self) -> Dict[str, str]:
        return dict(self._values)

    def __len__(self):
        return len(self._values)

    def __contains__(self, name):
        return name in self._values

    def resolve(self, text: str) -> str:
        """
        Replaces ${name} references with stored values. Values are truncated to
        MAX_VALUE_LENGTH and resolved recursively; when nesting goes deeper than
        MAX_RECURSION_DEPTH the input is returned untouched. Unknown names stay literal.
        """
        if not text:
            return text
        try:
            resolved = self._resolve_recursively(text, 0)
        except _DepthExceeded:
            logger.warning(f"Variable resolution exceeded depth {MAX_RECURSION_DEPTH} for '{preview(text)}'. Leaving it unresolved.")
            return text
        if resolved != text:
            logger.debug(f"Substituted: '{preview(text)}' -> '{preview(resolved)}'")
        return resolved

    def resolve_headers(self, headers: List[str]) -> List[str]:
        if not headers:
            return headers
        return [self.resolve(header) for header in headers]

    def resolve_body(self, body: Optional[str]) -> Optional[str]:
        if not body:
            return body
        resolved = self.resolve(body)
        if len(resolved) > MAX_BODY_LENGTH:
            logger.warning(f"Resolved body is {len(resolved)} characters, truncating to {MAX_BODY_LENGTH}.")
            resolved = resolved[:MAX_BODY_LENGTH]
        return resolved

    def _resolve_recursively(self, text: str, depth: int) -> str:
        if depth >= MAX_RECURSION_DEPTH:
            raise _DepthExceeded()

        def substitute(match: re.Match) -> str:
            name = match.group(1)
            if name not in self._values:
                return match.group(0)
            value = self._values[name]
            if len(value) > MAX_VALUE_LENGTH:
                value = value[:MAX_VALUE_LENGTH]
            return self._resolve_recursively(value, depth + 1)

        return _variable_pattern.sub(substitute, text)
