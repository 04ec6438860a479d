import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from azure.monitor.opentelemetry.exporter import AzureMonitorTraceExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from scheduling.configuration.config import Config

# Scheduling logger, shared by every service and the store
logger = logging.getLogger("scheduling")
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
logger.addHandler(handler)
logger.setLevel(logging.INFO)

resource = Resource(attributes={
    SERVICE_NAME: "studio-scheduling",
    SERVICE_VERSION: "1.0.0"
})

def _set_properties(span, properties):
    for key, value in (properties or {}).items():
        # OpenTelemetry attributes cannot be None
        span.set_attribute(key, "" if value is None else str(value))

def setup_tracing():
    """Tracer for the scheduling engine; spans go to Application Insights when a connection string is set."""
    try:
        trace_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(trace_provider)

        if Config.APPLICATIONINSIGHTS_CONNECTION_STRING:
            trace_provider.add_span_processor(
                BatchSpanProcessor(AzureMonitorTraceExporter(
                    connection_string=Config.APPLICATIONINSIGHTS_CONNECTION_STRING
                ))
            )
            logger.info("Scheduling traces exported to Azure Monitor")
        else:
            logger.info("No Application Insights connection string, scheduling traces stay local")

        # Token verification fetches signing keys over httpx
        HTTPXClientInstrumentor().instrument()

        return trace.get_tracer("scheduling")
    except Exception as e:
        logger.error(f"Tracing setup failed, continuing without export: {str(e)}")
        return trace.get_tracer("scheduling")

tracer = setup_tracing()

def instrument_fastapi(app):
    """Trace every request of the scheduling API."""
    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("Scheduling API instrumented")
    except Exception as e:
        logger.error(f"Failed to instrument the scheduling API: {str(e)}")

def start_span(name, context=None, kind=None, attributes=None):
    """Span around one scheduling operation."""
    if kind is None:
        kind = trace.SpanKind.INTERNAL
    return tracer.start_as_current_span(name, context=context, kind=kind, attributes=attributes)

def log_event(event_name, properties=None):
    """Record a scheduling event such as a committed series or a finished shift."""
    try:
        with tracer.start_as_current_span(event_name) as span:
            _set_properties(span, properties)
        logger.info(f"Event: {event_name}", extra={"custom_properties": properties})
    except Exception as e:
        logger.error(f"Failed to log event '{event_name}': {str(e)}")

def log_exception(exception, properties=None):
    """Record a failed operation; callers re-raise afterwards."""
    try:
        with tracer.start_as_current_span("exception") as span:
            span.record_exception(exception)
            _set_properties(span, properties)
            span.set_status(trace.StatusCode.ERROR, str(exception))
        logger.exception(f"Exception: {str(exception)}", exc_info=exception,
                        extra={"custom_properties": properties})
    except Exception as e:
        logger.error(f"Failed to log exception: {str(e)}")

def log_metric(metric_name, value, properties=None):
    """Record a count, e.g. appointments created or moved."""
    try:
        with tracer.start_as_current_span(f"metric:{metric_name}") as span:
            span.set_attribute("metric.name", metric_name)
            span.set_attribute("metric.value", value)
            _set_properties(span, properties)
        logger.info(f"Metric: {metric_name}={value}",
                   extra={"custom_properties": properties})
    except Exception as e:
        logger.error(f"Failed to log metric '{metric_name}': {str(e)}")
