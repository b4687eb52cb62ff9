"""Wire codec for visualization documents.

Documents travel to the browser as JSON text frames. Encoding keeps the
caller's key order, so the same document always produces the same text.
Chart objects that know how to describe themselves (``to_dict()``, as
Altair charts do) are converted first; dates become ISO strings.
"""

from __future__ import annotations

import datetime as _dt
import json
from typing import Any

from vegaview.errors import DocumentEncodingError


def _default(obj: Any) -> Any:
    """Fallback for objects the json module does not know."""
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(obj, (_dt.datetime, _dt.date, _dt.time)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    # numpy scalars and arrays without importing numpy
    tolist = getattr(obj, "tolist", None)
    if callable(tolist):
        return tolist()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def encode(document: Any) -> str:
    """Serialize a document to its wire text.

    Raises:
        DocumentEncodingError: If the document holds values JSON cannot
            represent (arbitrary objects, NaN, Infinity).
    """
    if callable(getattr(document, "to_dict", None)):
        document = document.to_dict()
    try:
        return json.dumps(
            document,
            ensure_ascii=False,
            allow_nan=False,
            default=_default,
            separators=(",", ":"),
        )
    except (TypeError, ValueError, RecursionError) as e:
        raise DocumentEncodingError(str(e)) from e


def decode(text: str | bytes) -> Any:
    """Parse wire text back into a document.

    Raises:
        DocumentEncodingError: If the text is not valid JSON.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentEncodingError(f"Not a JSON document: {e}") from e

