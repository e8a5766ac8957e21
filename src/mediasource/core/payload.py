"""
Boundary validation for upstream JSON bodies.

Every response is classified exactly once into a `Payload` (with a
``results`` list that is always present) or an `AppFailure` describing an
application-level error. Malformed bodies raise `InvalidResponse`.
Downstream mapping code can then rely on ``payload.results`` being a list.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Union

from .errors import InvalidResponse

logger = logging.getLogger(__name__)

ErrorProbe = Callable[[Any], Optional[str]]


@dataclass(frozen=True)
class Payload:
    body: dict
    results: list = field(default_factory=list)

    @property
    def kind(self) -> str:
        return "results" if self.results else "empty"

    def header(self, key: str, default: Any = None) -> Any:
        headers = self.body.get("headers")
        return headers.get(key, default) if isinstance(headers, dict) else default


@dataclass(frozen=True)
class AppFailure:
    message: str


def _dig(body: Any, path: Sequence[str]) -> Any:
    cur = body
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        logger.error(
            "payload.invalid_json", extra={"body": (text or "")[:500], "error": str(e)}
        )
        raise InvalidResponse() from e


def classify_payload(
    data: Any,
    results_path: Sequence[str] = ("results",),
    error_probe: ErrorProbe | None = None,
) -> Union[Payload, AppFailure]:
    """Classify an already-parsed body.

    - a bare list becomes ``{"results": list}``
    - an error reported by ``error_probe`` becomes `AppFailure`
    - a missing or non-list results field becomes an empty list
    """
    if data is None:
        raise InvalidResponse("Empty response from server")
    if isinstance(data, list):
        logger.debug("payload.bare_list", extra={"count": len(data)})
        data = {"results": data}
        results_path = ("results",)
    if not isinstance(data, dict):
        raise InvalidResponse(f"Unexpected response type: {type(data).__name__}")

    if error_probe is not None:
        message = error_probe(data)
        if message:
            return AppFailure(message)

    results = _dig(data, results_path) if results_path else []
    if not isinstance(results, list):
        if results_path:
            logger.warning("payload.no_results", extra={"path": ".".join(results_path)})
        results = []
    return Payload(body=data, results=results)
