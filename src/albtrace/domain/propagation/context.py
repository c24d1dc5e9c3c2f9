from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from albtrace.domain.common.ids import SpanId, TraceId


@dataclass(frozen=True)
class PropagationContext:
    """Trace lineage carried between services.

    Empty strings mean "absent". ``trace_context`` holds extension fields that
    travel with the trace but have no meaning to the propagation layer.
    """

    trace_id: TraceId = TraceId("")
    parent_id: SpanId = SpanId("")
    grand_parent_id: SpanId = SpanId("")
    trace_context: dict[str, Any] = field(default_factory=dict)

    def is_valid(self) -> bool:
        return self.trace_id != "" and self.parent_id != ""
