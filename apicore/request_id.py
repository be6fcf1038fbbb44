from __future__ import annotations

import re
from uuid import uuid4

REQUEST_ID_HEADER = "X-Request-Id"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class RequestIdService:
    header_name = REQUEST_ID_HEADER

    def new_id(self) -> str:
        return str(uuid4())

    def resolve(self, incoming: str | None) -> str:
        """Reuse a well-formed incoming id, otherwise mint a fresh one."""
        value = (incoming or "").strip()
        if value and _REQUEST_ID_PATTERN.match(value):
            return value
        return self.new_id()
