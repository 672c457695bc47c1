from __future__ import annotations

import json
import logging
import zlib
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException, Request
from omegaconf import DictConfig
from pydantic import ValidationError

from .configuration import configure_logging, load_server_config
from .errors import UnknownJobTypeError
from .handlers import ReportHandlers
from .job_queue import JobQueue
from .models import HealthStatus, JobSubmissionResponse, parse_job
from .rendering import HtmlRenderer, PdfRenderer
from .signing import SIGNATURE_HEADER, verify
from .storage import ObjectStorage
from .webhooks import FireAndForgetDelivery, WebhookNotifier

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


def build_job_queue(config: DictConfig) -> JobQueue:
    storage = ObjectStorage.from_config(config.storage)
    handlers = ReportHandlers(
        storage=storage,
        html_renderer=HtmlRenderer(report_title=config.rendering.report_title),
        pdf_renderer=PdfRenderer(),
        page_capacity=int(config.layout.page_capacity),
    )
    notifier = WebhookNotifier(
        callback_url=config.webhook.callback_url,
        secret=config.webhook.secret,
        delivery=FireAndForgetDelivery(timeout=float(config.webhook.timeout_seconds)),
    )
    return JobQueue(handlers.registry(), notifier, max_workers=int(config.queue.max_workers))


server_config = load_server_config()
configure_logging(server_config.logging.level)

app = FastAPI(title="Voter Report Backend", version="0.1.0")

job_queue = build_job_queue(server_config)


def get_job_queue() -> JobQueue:
    return job_queue


def get_server_config() -> DictConfig:
    return server_config


def _decompress(raw: bytes, max_bytes: int) -> bytes:
    """Inflate a gzip body, refusing to produce more than ``max_bytes``."""
    inflater = zlib.decompressobj(wbits=16 + zlib.MAX_WBITS)
    try:
        body = inflater.decompress(raw, max_bytes + 1)
    except zlib.error as exc:
        raise HTTPException(status_code=400, detail=f"Invalid gzip body: {exc}") from exc
    if len(body) > max_bytes or inflater.unconsumed_tail:
        raise HTTPException(status_code=413, detail="Decompressed request body too large")
    if not inflater.eof:
        raise HTTPException(status_code=400, detail="Invalid gzip body: truncated stream")
    return body


def decode_request_body(raw: bytes, max_bytes: int) -> Dict[str, Any]:
    """
    Turn a request body into the job descriptor mapping.

    Gzip bodies are inflated first; anything else is read as plain JSON.
    """
    if len(raw) > max_bytes:
        raise HTTPException(status_code=413, detail="Request body too large")

    body = _decompress(raw, max_bytes) if raw[:2] == GZIP_MAGIC else raw
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:  # noqa: BLE001
        raise HTTPException(status_code=400, detail=f"Invalid JSON payload: {exc}") from exc

    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Job descriptor must be a JSON object")
    return data


def _check_signature(raw: bytes, signature: str | None, secret: str | None) -> None:
    if not secret:
        logger.error("Request signature verification is enabled but no webhook secret is configured")
        raise HTTPException(status_code=500, detail="Signature verification is misconfigured")
    if not signature:
        raise HTTPException(status_code=401, detail="Missing request signature")
    # Some senders sign the gzip bytes after a binary-string to UTF-8 round trip
    if verify(raw, signature, secret) or verify(raw.decode("latin-1").encode("utf-8"), signature, secret):
        return
    raise HTTPException(status_code=401, detail="Invalid request signature")


@app.get("/healthz", response_model=HealthStatus)
def healthcheck(queue: JobQueue = Depends(get_job_queue)) -> HealthStatus:
    return HealthStatus(status="ok", pending=queue.pending_count, running=queue.running_count)


@app.post("/start-job", response_model=JobSubmissionResponse)
async def start_job(
    request: Request,
    queue: JobQueue = Depends(get_job_queue),
    settings: DictConfig = Depends(get_server_config),
) -> JobSubmissionResponse:
    raw = await request.body()
    if settings.server.verify_request_signatures:
        _check_signature(raw, request.headers.get(SIGNATURE_HEADER), settings.webhook.secret)

    data = decode_request_body(raw, int(settings.server.max_body_bytes))

    job_type = data.get("type")
    if job_type not in queue.job_types:
        error = UnknownJobTypeError(str(job_type), queue.job_types)
        raise HTTPException(status_code=400, detail=str(error))

    try:
        job = parse_job(data)
    except ValidationError as exc:
        logger.warning(f"Rejected {job_type} job: {exc.error_count()} validation errors")
        raise HTTPException(status_code=422, detail=json.loads(exc.json(include_url=False))) from exc

    try:
        waiting = queue.submit(job)
    except UnknownJobTypeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return JobSubmissionResponse(success=True, message="Request received", num_jobs=waiting)
