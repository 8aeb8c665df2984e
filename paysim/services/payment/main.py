"""Payment provider simulator API.

Charges invoices with a random outcome and exposes readiness/liveness probes
for the hosting platform.
"""

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import Response
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError
from starlette.requests import ClientDisconnect

from paysim.common.config import settings
from paysim.common.logging import configure_logging, logger
from paysim.common.metrics import charge_requests_total, metrics_response
from paysim.common.middleware import (
    AccessLogMiddleware,
    ConnectionTimeoutMiddleware,
    MetricsMiddleware,
    RequestReadTimeout,
)
from paysim.common.server import ServerConfig, log_startup_config, serve
from paysim.common.tracing import instrument_app, setup_tracing
from paysim.services.payment.schemas import Invoice
from paysim.services.payment.service import ChargeService, OutcomeGenerator

configure_logging()
tracing_enabled = setup_tracing(settings.service_name)
server_config = ServerConfig.from_settings(settings)
service = ChargeService(OutcomeGenerator(settings.outcome_seed), service_name=settings.service_name)

HEALTH_MEDIA_TYPE = "application/health+json"
HEALTH_PASS_BODY = '{"status":"pass"}'

router = APIRouter(prefix="/rest")


@router.post("/v1/charge")
async def charge(request: Request) -> Response:
    """Charge one invoice and echo it back with a random `result`.

    Every decode failure (unreadable body, bad JSON, wrong field types) is a
    400 with an empty body.
    """

    try:
        body = await request.body()
    except (ClientDisconnect, RequestReadTimeout):
        return Response(status_code=400)
    try:
        invoice = Invoice.model_validate_json(body)
    except ValidationError:
        return Response(status_code=400)

    charge_requests_total.labels(service=settings.service_name).inc()
    charged = service.charge(invoice)
    try:
        content = charged.model_dump_json()
    except (PydanticSerializationError, ValueError):
        logger.exception("charge response serialization failed customer_id=%s", invoice.customer_id)
        return Response(status_code=500)
    return Response(content=content, media_type="application/json")


@router.get("/ready")
@router.get("/alive")
def health() -> Response:
    """Readiness/liveness probe; the service has no dependencies to check."""

    return Response(content=HEALTH_PASS_BODY, media_type=HEALTH_MEDIA_TYPE)


def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


def create_app(config: ServerConfig) -> FastAPI:
    """Assemble routes and middleware; the access log wraps everything."""

    app = FastAPI(title="PaySim Payment Provider")
    app.include_router(router)
    app.add_api_route("/metrics", metrics, methods=["GET"])
    app.add_middleware(
        ConnectionTimeoutMiddleware,
        read_timeout=config.read_timeout,
        write_timeout=config.write_timeout,
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(AccessLogMiddleware)
    if tracing_enabled:
        instrument_app(app)
    return app


app = create_app(server_config)


def run() -> None:
    """Console entrypoint: serve the app on the configured address."""

    log_startup_config(settings.service_name, server_config)
    serve(app, server_config, log_level=settings.log_level)


if __name__ == "__main__":
    run()
