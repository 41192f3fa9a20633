import asyncio
from pathlib import Path
from time import perf_counter
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, ConfigDict, Field
import structlog

from backup_relay.config import get_settings
from backup_relay.delivery import DeliveryClient, DiscordWebhookClient, SinkDeliveryError
from backup_relay.services.archive import ArchiveError, LogArchive, run_retention_loop
from backup_relay.services.report import (
    RenderContext,
    RenderOptions,
    get_split_policy,
    get_table_profile,
    parse_report,
    render_fallback,
    render_report,
)

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(20),
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=False,
)

logger = structlog.get_logger(__name__)

app = FastAPI(title="Backup Report Relay", version="0.1.0")

_retention_task: asyncio.Task[None] | None = None
_retention_stop: asyncio.Event | None = None


class WebhookRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_content: str = Field(alias="messageContent")
    message_title: str | None = Field(default=None, alias="messageTitle")
    severity: str | None = None
    url_log_accessible: str | None = Field(default=None, alias="urlLogAccessible")
    # Misspelled legacy name, only honoured when urlLogAccessible is absent.
    url_log_accessable: str | None = Field(default=None, alias="urlLogAccessable")
    node: str | None = "pve"
    discord_webhook: str | None = Field(default=None, alias="discordWebhook")


class SinkNotConfiguredError(RuntimeError):
    pass


def get_log_archive() -> LogArchive:
    return LogArchive(Path(get_settings().logs_dir))


def get_delivery_client() -> DeliveryClient:
    return DiscordWebhookClient()


async def resolve_sink_address(http_request: Request) -> str:
    override = None
    try:
        body = await http_request.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("discordWebhook"), str):
        override = body["discordWebhook"].strip() or None

    sink_address = override or get_settings().discord_webhook_url
    if not sink_address:
        raise SinkNotConfiguredError("Discord webhook URL is not configured")
    return sink_address


def _link_prefix(request: WebhookRequest) -> str:
    if request.url_log_accessible is not None:
        return request.url_log_accessible
    if request.url_log_accessable is not None:
        logger.warning("using legacy urlLogAccessable field as log link prefix")
        return request.url_log_accessable
    return ""


@app.on_event("startup")
async def startup() -> None:
    global _retention_task, _retention_stop

    settings = get_settings()
    logger.info(
        "backup relay starting",
        port=settings.port,
        retention_days=settings.log_retention_days,
        logs_dir=settings.logs_dir,
        sink_configured=settings.discord_webhook_url is not None,
    )
    _retention_stop = asyncio.Event()
    _retention_task = asyncio.create_task(
        run_retention_loop(
            get_log_archive(),
            retention_days=settings.log_retention_days,
            interval_seconds=settings.log_sweep_interval_seconds,
            stop_event=_retention_stop,
        )
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    if _retention_stop is not None:
        _retention_stop.set()
    if _retention_task is not None:
        await _retention_task


@app.middleware("http")
async def access_log(request: Request, call_next):
    start = perf_counter()
    response = await call_next(request)
    logger.info(
        "request handled",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((perf_counter() - start) * 1000, 1),
    )
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    del request
    messages = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    return PlainTextResponse("; ".join(messages) or "invalid request", status_code=400)


@app.exception_handler(SinkNotConfiguredError)
async def sink_not_configured_handler(request: Request, exc: SinkNotConfiguredError) -> Response:
    del request
    logger.error("DISCORD_WEBHOOK_URL environment variable is not set")
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/logs/{filename}")
def get_log_file(
    filename: str,
    archive: Annotated[LogArchive, Depends(get_log_archive)],
) -> FileResponse:
    path = archive.resolve(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="log file not found")
    return FileResponse(path, media_type="text/plain; charset=utf-8")


@app.post("/webhook")
async def webhook(
    sink_address: Annotated[str, Depends(resolve_sink_address)],
    request: WebhookRequest,
    archive: Annotated[LogArchive, Depends(get_log_archive)],
    delivery_client: Annotated[DeliveryClient, Depends(get_delivery_client)],
) -> Response:
    try:
        return await _relay_report(request, sink_address, archive, delivery_client)
    except Exception as exc:
        logger.error("error processing webhook", error=repr(exc))
        return PlainTextResponse(str(exc) or type(exc).__name__, status_code=400)


async def _relay_report(
    request: WebhookRequest,
    sink_address: str,
    archive: LogArchive,
    delivery_client: DeliveryClient,
) -> Response:
    settings = get_settings()
    try:
        policy = get_split_policy(settings.split_policy)
        options = RenderOptions(profile=get_table_profile(settings.table_profile))
    except ValueError as exc:
        logger.error("invalid render configuration", error=str(exc))
        return PlainTextResponse(str(exc), status_code=400)

    try:
        log_reference: str | None = await archive.store(request.message_content)
    except ArchiveError as exc:
        logger.warning("report archive failed, continuing without log link", error=str(exc))
        log_reference = None

    parsed = parse_report(request.message_content, policy=policy)
    logger.info("report parsed", records=len(parsed.records), all_ok=parsed.all_ok)

    context = RenderContext(
        title=request.message_title or "",
        severity=request.severity or "",
        node=request.node or "pve",
        link_prefix=_link_prefix(request),
    )
    embeds = render_report(
        parsed,
        log_reference,
        context,
        message=request.message_content,
        options=options,
    )
    fallback = render_fallback(parsed, log_reference, context, limits=options.limits)

    try:
        result = await delivery_client.deliver(embeds, sink_address, fallback=fallback)
    except SinkDeliveryError as exc:
        logger.error("error processing webhook", error=str(exc), status_code=exc.status_code)
        return PlainTextResponse(str(exc), status_code=400)

    return Response(
        content=result.body,
        status_code=200,
        media_type=result.content_type or "text/plain",
    )


def run() -> None:
    import uvicorn

    uvicorn.run("backup_relay.main:app", host="0.0.0.0", port=get_settings().port, reload=False)


if __name__ == "__main__":
    run()
