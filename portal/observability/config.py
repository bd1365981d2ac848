# SPDX-License-Identifier: Apache-2.0

"""
Tracing and logging setup for the beneficiary portal.

Tracing is optional (OTEL_ENABLED). When on, spans are sampled by trace id
with a ratio chosen per ENVIRONMENT and exported over OTLP; development also
prints spans to the console.
"""

import os
import logging
from typing import List, Optional
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

SERVICE_NAME = 'beneficiary-portal-api'

SAMPLING_RATIOS = {
    'production': 0.1,
    'staging': 0.5,
}

LOG_LEVELS = {
    'production': logging.WARNING,
    'staging': logging.INFO,
    'development': logging.DEBUG,
    'testing': logging.WARNING,
}

# Third-party loggers that drown out portal events outside development
NOISY_LOGGERS = ('pymongo', 'werkzeug', 'urllib3')

_tracing_configured = False


def _span_processors(environment: str, otlp_endpoint: Optional[str]) -> List[SpanProcessor]:
    processors: List[SpanProcessor] = []
    if environment == 'development':
        processors.append(BatchSpanProcessor(ConsoleSpanExporter()))
    if otlp_endpoint:
        headers = None
        api_key = os.getenv('OTEL_API_KEY')
        if api_key:
            headers = {"Authorization": f"Bearer {api_key}"}
        processors.append(BatchSpanProcessor(
            OTLPSpanExporter(endpoint=otlp_endpoint, headers=headers),
            max_export_batch_size=512
        ))
    return processors


def setup_observability() -> None:
    """Configure logging, then tracing once per process when enabled."""
    global _tracing_configured
    environment = os.getenv('ENVIRONMENT', 'development')
    setup_structured_logging(environment)

    if os.getenv('OTEL_ENABLED', 'true').lower() != 'true' or _tracing_configured:
        return

    tracer_provider = TracerProvider(
        sampler=TraceIdRatioBased(SAMPLING_RATIOS.get(environment, 1.0)),
        resource=Resource.create({
            "service.name": SERVICE_NAME,
            "service.version": os.getenv('SERVICE_VERSION', '1.0.0'),
            "deployment.environment": environment
        })
    )
    otlp_endpoint = os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
    for processor in _span_processors(environment, otlp_endpoint):
        tracer_provider.add_span_processor(processor)

    trace.set_tracer_provider(tracer_provider)
    _tracing_configured = True
    logging.getLogger(__name__).info(
        "Tracing configured",
        extra={"environment": environment, "otlp_endpoint": otlp_endpoint}
    )


def setup_structured_logging(environment: str) -> None:
    """Set the root log level for the environment."""
    logging.basicConfig(
        level=LOG_LEVELS.get(environment, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s %(message)s'
    )

    if environment == 'development':
        logging.getLogger('portal').setLevel(logging.DEBUG)
    else:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
