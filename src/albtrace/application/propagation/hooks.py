from __future__ import annotations

import logging
from collections.abc import Mapping

from albtrace.application.propagation.amazon import (
    AMAZON_TRACE_HEADER,
    marshal_amazon_trace_context,
    unmarshal_amazon_trace_context,
)
from albtrace.domain.propagation.context import PropagationContext
from albtrace.domain.propagation.errors import PropagationError

logger = logging.getLogger(__name__)


def _header_value(headers: Mapping[str, str], header_name: str) -> str | None:
    value = headers.get(header_name)
    if value is not None:
        return value
    wanted = header_name.lower()
    for key, candidate in headers.items():
        if key.lower() == wanted:
            return candidate
    return None


def http_trace_parser_hook(
    headers: Mapping[str, str],
    header_name: str = AMAZON_TRACE_HEADER,
) -> PropagationContext | None:
    """
    Retrieves the propagation context out of inbound request headers. Returns None
    when the header is missing or unusable so the caller can start a new trace.
    """
    header = _header_value(headers, header_name)
    if header is None:
        logger.debug("amzn_trace_header_missing")
        return None
    try:
        return unmarshal_amazon_trace_context(header)
    except PropagationError as exc:
        logger.warning("amzn_trace_header_invalid", extra={"header": header, "error": str(exc)})
        return None


def http_trace_propagation_hook(
    propagation_context: PropagationContext | None,
) -> dict[str, str]:
    """
    Given a propagation context, returns the headers that should be added to an
    outbound request.
    """
    if propagation_context is None:
        return {}
    return {AMAZON_TRACE_HEADER: marshal_amazon_trace_context(propagation_context)}
