from __future__ import annotations

from typing import NewType

TraceId = NewType("TraceId", str)
SpanId = NewType("SpanId", str)
