from __future__ import annotations

from typing import Any

from albtrace.domain.common.ids import SpanId, TraceId
from albtrace.domain.propagation.context import PropagationContext
from albtrace.domain.propagation.errors import InvalidPropagationHeaderError

AMAZON_TRACE_HEADER = "X-Amzn-Trace-Id"

_ROOT_KEY = "root"
_SELF_KEY = "self"
_PARENT_KEY = "parent"
_GRAND_PARENT_KEY = "grandparent"


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def marshal_amazon_trace_context(prop: PropagationContext | None) -> str:
    """Serialize ``prop`` into an ``X-Amzn-Trace-Id`` header value.

    ``Parent`` is emitted rather than ``Self``: a load balancer on the path adds
    its own ``Self`` field and leaves ``Parent`` alone. ``GrandParent`` is only
    read back when no load balancer rewrote the header.

    Keys and values are written verbatim, so neither may contain ``;`` or ``=``.
    Returns an empty string when ``prop`` is ``None``.
    """
    if prop is None:
        return ""

    segments = [f"Root={prop.trace_id}", f"Parent={prop.parent_id}"]
    if prop.grand_parent_id:
        segments.append(f"GrandParent={prop.grand_parent_id}")
    for key, value in prop.trace_context.items():
        segments.append(f"{key}={_format_value(value)}")
    return ";".join(segments)


def unmarshal_amazon_trace_context(header: str) -> PropagationContext:
    """Parse an ``X-Amzn-Trace-Id`` header value into a propagation context.

    A load balancer generates a ``Root`` field when the header is missing,
    inserts a ``Self`` field when only ``Root`` is present, and overwrites
    ``Self`` on every later hop. ``Self`` is therefore the caller as seen through
    the load balancer, and any ``Parent`` written by the application moves one
    level back to become the grandparent.

    Unrecognized fields are kept as strings in ``trace_context``.

    Raises InvalidPropagationHeaderError if no usable trace and parent id remain.
    """
    trace_id = ""
    parent_id = ""
    grand_parent_id = ""
    parent = ""
    grand_parent = ""
    trace_context: dict[str, Any] = {}

    for segment in header.split(";"):
        key, sep, value = segment.partition("=")
        if not sep:
            continue
        normalized_key = key.lower()
        if normalized_key == _SELF_KEY:
            parent_id = value
        elif normalized_key == _ROOT_KEY:
            trace_id = value
        elif normalized_key == _PARENT_KEY:
            parent = value
        elif normalized_key == _GRAND_PARENT_KEY:
            grand_parent = value
        else:
            trace_context[key] = value

    has_self = parent_id != ""
    has_parent = parent != ""
    has_grand_parent = grand_parent != ""

    if not has_self and has_parent and has_grand_parent:
        # no load balancer, caller had a parent of its own
        parent_id = parent
        grand_parent_id = grand_parent
    elif not has_self and has_parent and not has_grand_parent:
        # no load balancer, caller was a root span
        parent_id = parent
    elif has_self and has_parent:
        # load balancer rewrote Self; the caller's Parent is one hop further back
        grand_parent_id = parent

    # Fresh header generated by the load balancer: the root is the only ancestor.
    if trace_id and not parent_id:
        parent_id = trace_id

    prop = PropagationContext(
        trace_id=TraceId(trace_id),
        parent_id=SpanId(parent_id),
        grand_parent_id=SpanId(grand_parent_id),
        trace_context=trace_context,
    )
    if not prop.is_valid():
        raise InvalidPropagationHeaderError(header)
    return prop
