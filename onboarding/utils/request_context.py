from dataclasses import dataclass, field
from typing import Optional
import time
import uuid

from onboarding.schemas.onboarding import RequestMetadata


@dataclass
class RequestContext:
    request_id: str
    started: float = field(default_factory=time.monotonic)

    def metadata(self, message: Optional[str] = None) -> RequestMetadata:
        duration_ms = int((time.monotonic() - self.started) * 1000)
        return RequestMetadata(request_id=self.request_id, duration_ms=duration_ms, message=message)


def new_request_context() -> RequestContext:
    return RequestContext(request_id=f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}")
