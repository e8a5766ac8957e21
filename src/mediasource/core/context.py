"""
Per-session state handed to every plugin operation.

The host owns one `SourceContext` per enabled plugin. It carries the
requested page, the credential rotation pointer and an opaque key/value bag
that round-trips through JSON (``restore`` at enable time, ``dump`` at save
time). Nothing in a plugin keeps state between calls except through it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

_CREDENTIAL_KEY = "credential_index"


@dataclass
class SourceContext:
    page: int = 1
    credential_index: int = 0
    state: dict[str, Any] = field(default_factory=dict)

    def offset(self, page_size: int) -> int:
        return (max(self.page, 1) - 1) * page_size

    @classmethod
    def restore(cls, saved_state: Optional[str]) -> "SourceContext":
        if not saved_state:
            return cls()
        try:
            data = json.loads(saved_state)
        except ValueError:
            logger.warning("context.restore.invalid_state")
            return cls()
        if not isinstance(data, dict):
            return cls()
        index = data.pop(_CREDENTIAL_KEY, 0)
        try:
            index = int(index)
        except (TypeError, ValueError):
            index = 0
        return cls(credential_index=index, state=data)

    def dump(self) -> str:
        data = dict(self.state)
        data[_CREDENTIAL_KEY] = self.credential_index
        return json.dumps(data)
