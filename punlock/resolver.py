"""
Secret resolution — pull a string out of a vault item with a JMESPath query.

    resolve({"login": {"password": "hunter2"}}, "login.password")  → "hunter2"
    resolve(item, "fields[?name=='token'].value | [0]")            → "..."

Only strings are valid secrets. Objects, arrays, numbers, booleans and
missing nodes all raise ExtractionError.
"""

from __future__ import annotations

import json
from typing import Any

import jmespath
from jmespath import exceptions as jmespath_exceptions

from punlock.errors import ExtractionError, ParseError, QueryError


def parse_document(raw: bytes | str) -> Any:
    """Parse a vault item payload as JSON."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"vault item is not valid JSON: {e}") from e


def resolve(document: Any, query: str) -> str:
    """Apply *query* to *document* and return the matched string."""
    try:
        expression = jmespath.compile(query)
    except jmespath_exceptions.JMESPathError as e:
        raise QueryError(f"invalid query {query!r}: {e}") from e

    try:
        result = expression.search(document)
    except jmespath_exceptions.JMESPathError as e:
        raise QueryError(f"query {query!r} failed to apply: {e}") from e

    if result is None:
        raise ExtractionError(f"query {query!r} matched nothing")
    if not isinstance(result, str):
        raise ExtractionError(
            f"query {query!r} matched a {type(result).__name__}, expected a string"
        )
    return result
