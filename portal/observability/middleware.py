# SPDX-License-Identifier: Apache-2.0

"""
Request telemetry for the portal API.

Every request runs inside a Flask server span. The portal session id and the
endpoint name are attached to that span, the finished request is logged with
its duration, and the trace id is echoed back in X-Trace-Id.
"""

import os
import time
import logging
from typing import Optional
from flask import Flask, Response, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)

TRACE_HEADER = 'X-Trace-Id'


def _current_trace_id() -> Optional[str]:
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None
    return format(span_context.trace_id, "032x")


def _session_id() -> Optional[str]:
    return (request.view_args or {}).get('session_id')


def add_observability_middleware(app: Flask) -> None:
    """Instrument the app and log one line per finished request."""
    FlaskInstrumentor().instrument_app(app, excluded_urls="api/healthz")
    slow_request_ms = float(os.getenv('SLOW_REQUEST_MS', '2000'))

    @app.before_request
    def start_request_telemetry():
        g.request_started = time.perf_counter()

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("portal.endpoint", request.endpoint or "")
            session_id = _session_id()
            if session_id:
                span.set_attribute("portal.session_id", session_id)

    @app.after_request
    def finish_request_telemetry(response: Response) -> Response:
        elapsed_ms = round((time.perf_counter() - g.get('request_started', time.perf_counter())) * 1000, 2)
        trace_id = _current_trace_id()

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("http.duration_ms", elapsed_ms)

        # Bodies may carry PINs; only the route and outcome are logged
        log = logger.warning if elapsed_ms >= slow_request_ms else logger.info
        log(
            "Portal request handled",
            extra={
                "method": request.method,
                "endpoint": request.endpoint,
                "session_id": _session_id(),
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "trace_id": trace_id
            }
        )

        if trace_id:
            response.headers[TRACE_HEADER] = trace_id
        return response
