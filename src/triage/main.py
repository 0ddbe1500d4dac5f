"""FastAPI application entry point for issue triage.

Receives GitHub webhooks, authenticates them, and runs one triage pass
per delivery. Passes whose actions are all soft-failure are acknowledged
immediately and executed after the response is sent; passes containing
a hard-failure action are awaited so their failure becomes a 500.
"""

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from .classifier.agent import ClassificationError, IssueClassifier
from .classifier.translation import TitleTranslator
from .config import TriageSettings, get_settings
from .context.gatherer import ContextGatherer
from .context.models import GatherOptions
from .dispatcher import TriageDispatcher
from .events.emitter import EventEmitter, EventSinkType, create_event_emitter
from .events.metrics import generate_metrics_output, get_metrics
from .executor import ActionExecutionError, ActionExecutor, raise_for_hard_failures
from .github.client import GitHubClient
from .github.dry_run import DryRunGitHubClient
from .webhook.handler import SIGNATURE_HEADER, WebhookHandler, create_webhook_handler

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass
class TriageServices:
    """Collaborators wired once at startup and shared by all requests.

    Each pass only reads from these; no per-delivery state is kept here.
    """

    settings: TriageSettings
    webhook_handler: WebhookHandler
    github_client: GitHubClient
    dispatcher: TriageDispatcher
    event_emitter: EventEmitter


# Initialized during lifespan startup
services: Optional[TriageServices] = None


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: TriageSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Triage configuration:")
    logger.info(f"  GitHub Base URL: {settings.github_base_url}")
    logger.info(f"  GitHub Token: {_redact_secret(settings.github_token)}")
    logger.info(
        f"  GitHub Webhook Secret: {_redact_secret(settings.github_webhook_secret)}"
    )
    logger.info(f"  GitHub Max Retries: {settings.github_max_retries}")
    logger.info(f"  Spam Repository: {settings.spam_repository_node_id or '(disabled)'}")
    logger.info(f"  LLM URL: {settings.llm_url}")
    logger.info(f"  LLM Model: {settings.llm_model}")
    logger.info(f"  LLM API Key: {_redact_secret(settings.llm_api_key)}")
    logger.info(f"  Translation Model: {settings.effective_translation_model}")
    logger.info(f"  Project Name: {settings.project_name}")
    logger.info(f"  Max Comments: {settings.max_comments}")
    logger.info(f"  Timeline Limit: {settings.timeline_limit}")
    logger.info(f"  Dev Mode: {settings.dev_mode}")
    logger.info(f"  Dry Run: {settings.dry_run}")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")


def build_services(cfg: TriageSettings) -> TriageServices:
    """Wire all triage dependencies from validated settings."""
    client_cls = DryRunGitHubClient if cfg.dry_run else GitHubClient
    github_client = client_cls(
        token=cfg.github_token,
        base_url=cfg.github_base_url,
        max_retries=cfg.github_max_retries,
        timeout=cfg.github_timeout_seconds,
    )

    event_emitter = create_event_emitter(
        [EventSinkType.LOGGING, EventSinkType.METRICS]
    )

    classifier = IssueClassifier(
        llm_url=cfg.llm_url,
        model_name=cfg.llm_model,
        api_key=cfg.llm_api_key,
        timeout=cfg.llm_timeout_seconds,
        project_name=cfg.project_name,
    )
    translator = TitleTranslator(
        llm_url=cfg.llm_url,
        model_name=cfg.effective_translation_model,
        api_key=cfg.llm_api_key,
        timeout=cfg.llm_timeout_seconds,
    )

    dispatcher = TriageDispatcher(
        classifier=classifier,
        translator=translator,
        gatherer=ContextGatherer(github_client=github_client),
        executor=ActionExecutor(github_client=github_client, event_emitter=event_emitter),
        event_emitter=event_emitter,
        spam_repository_id=cfg.spam_repository_node_id,
        gather_options=GatherOptions(
            max_comments=cfg.max_comments,
            timeline_limit=cfg.timeline_limit,
        ),
    )

    return TriageServices(
        settings=cfg,
        webhook_handler=create_webhook_handler(
            secret=cfg.github_webhook_secret, dev_mode=cfg.dev_mode
        ),
        github_client=github_client,
        dispatcher=dispatcher,
        event_emitter=event_emitter,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown."""
    global services

    logger.info("Issue triage starting up...")

    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    _log_configuration(settings)
    if settings.dev_mode:
        logger.warning("Development mode: unsigned webhook deliveries are accepted")
    if not settings.spam_transfer_enabled:
        logger.warning("No spam repository configured: spam issues will not be transferred")

    services = build_services(settings)

    logger.info("Issue triage started successfully")

    yield

    logger.info("Issue triage shutting down...")

    if services is not None:
        await services.github_client.close()
        await services.event_emitter.close()
        services = None

    logger.info("Issue triage shutdown complete")


app = FastAPI(
    title="Issue Triage",
    description="Automatic triage of GitHub issues, edits, comments and labels",
    version="1.0.0",
    lifespan=lifespan,
)


def _require_services() -> TriageServices:
    if services is None:
        logger.error("Triage service not initialized")
        raise HTTPException(status_code=503, detail="Triage service not initialized")
    return services


@app.get("/health")
async def health():
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@app.get("/ready")
async def ready():
    """Readiness probe endpoint.

    Reports whether the GitHub API is reachable with the configured token.
    Returns 503 while it is not.
    """
    current = _require_services()
    github_status = "healthy" if await current.github_client.health_check() else "unhealthy"
    is_ready = github_status == "healthy"

    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "status": "ready" if is_ready else "not_ready",
            "dependencies": {"github": github_status},
        },
    )


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    # Registers the triage collectors even before the first event
    get_metrics()
    return Response(content=generate_metrics_output(), media_type=CONTENT_TYPE_LATEST)


@app.post("/webhooks/github")
async def github_webhook(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
):
    """GitHub webhook receiver endpoint.

    - 401 when the signature is invalid (unless in development mode)
    - 500 when the classifier answer is unusable or a transfer failed
    - otherwise 200 with diagnostic X-Triage-* headers

    Returns:
        dict: Acknowledgment of the delivery.
    """
    current = _require_services()

    body = await request.body()
    if not current.webhook_handler.is_authorized(body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("Rejected webhook delivery with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    event = current.webhook_handler.parse_event(payload)
    if event is None:
        return {"status": "ignored", "message": "Unsupported or invalid event"}

    try:
        result = await current.dispatcher.dispatch(event)
    except ClassificationError:
        raise HTTPException(status_code=500, detail="Could not parse classifier response")

    response.headers.update(result.diagnostic_headers())
    acknowledgment = {
        "issue_id": event.issue_id,
        "flow": result.flow.value,
        "reason": result.decision.reason,
        "actions": result.decision.describe(),
    }

    if not result.actions:
        return {"status": "skipped" if result.skipped else "processed", **acknowledgment}

    if result.detached:
        background_tasks.add_task(current.dispatcher.execute, event, result)
        return {"status": "accepted", **acknowledgment}

    outcomes = await current.dispatcher.execute(event, result)
    try:
        raise_for_hard_failures(outcomes)
    except ActionExecutionError as exc:
        logger.error(
            "Triage action failed",
            extra={"issue_id": event.issue_id, "error": exc.message},
        )
        raise HTTPException(status_code=500, detail=exc.message)

    return {"status": "processed", **acknowledgment}


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "src.triage.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
        reload=dev_settings.dev_mode,
    )
