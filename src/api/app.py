"""HTTP API: preferences, alert rules, notifications and event ingest.

Runs as an ``aiohttp`` web server alongside the pipeline.
Callers identify themselves with ``X-User-Id``. Rule management, event
ingest and metrics are admin-only (``X-Admin-Token``) when an admin token
is configured.

Exposes:
- ``GET|PUT|PATCH /api/preferences``
- ``GET|POST /api/rules``, ``GET|PUT|DELETE /api/rules/{rule_id}``
- ``GET /api/notifications`` (filters: category, read, search, priority,
  since, until, limit, offset)
- ``GET /api/notifications/stats``
- ``GET /api/notifications/stream`` → server-sent events for new records
- ``POST /api/notifications/read-all``, ``POST /api/notifications/bulk-read``,
  ``POST /api/notifications/bulk-delete``
- ``GET|DELETE /api/notifications/{notification_id}``,
  ``POST /api/notifications/{notification_id}/read``
- ``POST /api/events``
- ``GET /api/metrics``
"""

from __future__ import annotations

import asyncio
import hmac
import json
from typing import Any

import structlog
from aiohttp import web
from pydantic import BaseModel, ValidationError

from src.core.types import Event, NotificationFilter
from src.delivery.metrics import DeliveryMetrics
from src.events.base import EventSourceClosedError, QueueEventSource
from src.notifications.store import NotificationStore
from src.pipeline import AlertPipeline
from src.preferences.store import PreferenceStore
from src.rules.exceptions import RuleNotFoundError
from src.rules.store import RuleStore
from src.store.exceptions import StoreUnavailableError

logger = structlog.get_logger(__name__)

RULES_KEY = web.AppKey("rules", RuleStore)
PREFERENCES_KEY = web.AppKey("preferences", PreferenceStore)
NOTIFICATIONS_KEY = web.AppKey("notifications", NotificationStore)
PIPELINE_KEY = web.AppKey("pipeline", AlertPipeline)
EVENT_SOURCE_KEY = web.AppKey("event_source", QueueEventSource)
METRICS_KEY = web.AppKey("metrics", DeliveryMetrics)
ADMIN_TOKEN_KEY = web.AppKey("admin_token", str)
HEARTBEAT_KEY = web.AppKey("heartbeat_secs", float)

_PUBLIC_PATHS = frozenset({"/api/health"})


def _json(data: Any, status: int = 200) -> web.Response:
    return web.json_response(data, status=status)


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json")


def _error(status: int, message: str, **extra: Any) -> web.Response:
    return _json({"error": message, **extra}, status=status)


@web.middleware
async def _identity_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Require ``X-User-Id`` on every API route except health."""
    if request.path not in _PUBLIC_PATHS:
        user_id = request.headers.get("X-User-Id", "").strip()
        if not user_id:
            return _error(401, "missing X-User-Id header")
        request["user_id"] = user_id
    return await handler(request)


@web.middleware
async def _error_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Translate domain errors into HTTP responses."""
    try:
        return await handler(request)
    except ValidationError as exc:
        return _error(400, "validation failed", details=json.loads(exc.json()))
    except json.JSONDecodeError:
        return _error(400, "request body is not valid JSON")
    except RuleNotFoundError as exc:
        return _error(404, f"rule not found: {exc}")
    except StoreUnavailableError as exc:
        logger.warning("store_unavailable", path=request.path, error=str(exc))
        return web.json_response(
            {"error": "store unavailable, retry later"},
            status=503,
            headers={"Retry-After": "1"},
        )


def _require_admin(request: web.Request) -> None:
    token = request.app.get(ADMIN_TOKEN_KEY) or ""
    if not token:
        return
    supplied = request.headers.get("X-Admin-Token", "")
    if not hmac.compare_digest(supplied, token):
        raise web.HTTPForbidden(
            text=json.dumps({"error": "admin token required"}),
            content_type="application/json",
        )


async def _body(request: web.Request) -> dict[str, Any]:
    data = await request.json()
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "request body must be a JSON object"}),
            content_type="application/json",
        )
    return data


# ── Health ──────────────────────────────────────────────────────


async def _handle_health(request: web.Request) -> web.Response:
    return _json({"status": "ok"})


# ── Preferences ─────────────────────────────────────────────────


async def _handle_get_preferences(request: web.Request) -> web.Response:
    prefs = await request.app[PREFERENCES_KEY].get(request["user_id"])
    return _json(_dump(prefs))


async def _handle_put_preferences(request: web.Request) -> web.Response:
    body = await _body(request)
    prefs = await request.app[PREFERENCES_KEY].put(request["user_id"], body)
    return _json(_dump(prefs))


async def _handle_patch_preferences(request: web.Request) -> web.Response:
    body = await _body(request)
    prefs = await request.app[PREFERENCES_KEY].update(request["user_id"], body)
    return _json(_dump(prefs))


# ── Rules (admin) ───────────────────────────────────────────────


async def _handle_list_rules(request: web.Request) -> web.Response:
    _require_admin(request)
    enabled_raw = request.query.get("enabled")
    enabled = None if enabled_raw is None else enabled_raw.lower() in ("1", "true", "yes")
    rules = await request.app[RULES_KEY].list(
        event_type=request.query.get("event_type"),
        enabled=enabled,
    )
    return _json({"rules": [_dump(r) for r in rules]})


async def _handle_create_rule(request: web.Request) -> web.Response:
    _require_admin(request)
    body = await _body(request)
    body.pop("id", None)
    rule = await request.app[RULES_KEY].create(body, created_by=request["user_id"])
    return _json(_dump(rule), status=201)


async def _handle_get_rule(request: web.Request) -> web.Response:
    _require_admin(request)
    rule = await request.app[RULES_KEY].get(request.match_info["rule_id"])
    return _json(_dump(rule))


async def _handle_update_rule(request: web.Request) -> web.Response:
    _require_admin(request)
    body = await _body(request)
    rule = await request.app[RULES_KEY].update(request.match_info["rule_id"], body)
    return _json(_dump(rule))


async def _handle_delete_rule(request: web.Request) -> web.Response:
    _require_admin(request)
    await request.app[RULES_KEY].delete(request.match_info["rule_id"])
    return web.Response(status=204)


# ── Notifications ───────────────────────────────────────────────


async def _handle_list_notifications(request: web.Request) -> web.Response:
    filters = NotificationFilter.model_validate(dict(request.query))
    records = await request.app[NOTIFICATIONS_KEY].query(request["user_id"], filters)
    return _json({"notifications": [_dump(n) for n in records]})


async def _handle_stats(request: web.Request) -> web.Response:
    stats = await request.app[NOTIFICATIONS_KEY].stats(request["user_id"])
    return _json(_dump(stats))


async def _handle_get_notification(request: web.Request) -> web.Response:
    record = await request.app[NOTIFICATIONS_KEY].get(
        request.match_info["notification_id"], user_id=request["user_id"]
    )
    if record is None:
        return _error(404, "notification not found")
    return _json(_dump(record))


async def _handle_mark_read(request: web.Request) -> web.Response:
    changed = await request.app[NOTIFICATIONS_KEY].mark_read(
        request.match_info["notification_id"], user_id=request["user_id"]
    )
    return _json({"changed": changed})


async def _handle_mark_all_read(request: web.Request) -> web.Response:
    changed = await request.app[NOTIFICATIONS_KEY].mark_all_read(request["user_id"])
    return _json({"changed": changed})


async def _handle_bulk_read(request: web.Request) -> web.Response:
    ids = _ids(await _body(request))
    changed = await request.app[NOTIFICATIONS_KEY].mark_read_many(
        ids, user_id=request["user_id"]
    )
    return _json({"changed": changed})


async def _handle_bulk_delete(request: web.Request) -> web.Response:
    ids = _ids(await _body(request))
    deleted = await request.app[NOTIFICATIONS_KEY].delete_many(
        ids, user_id=request["user_id"]
    )
    return _json({"deleted": deleted})


async def _handle_delete_notification(request: web.Request) -> web.Response:
    await request.app[NOTIFICATIONS_KEY].delete(
        request.match_info["notification_id"], user_id=request["user_id"]
    )
    return web.Response(status=204)


def _ids(body: dict[str, Any]) -> list[str]:
    ids = body.get("ids")
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "'ids' must be a list of strings"}),
            content_type="application/json",
        )
    return ids


async def _handle_stream(request: web.Request) -> web.StreamResponse:
    store = request.app[NOTIFICATIONS_KEY]
    heartbeat = request.app.get(HEARTBEAT_KEY, 15.0)
    user_id = request["user_id"]

    resp = web.StreamResponse(
        headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
        }
    )
    await resp.prepare(request)
    queue = store.subscribe(user_id)
    try:
        while True:
            try:
                notification = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                await resp.write(b": keepalive\n\n")
                continue
            payload = json.dumps(_dump(notification))
            await resp.write(f"event: notification\ndata: {payload}\n\n".encode())
    except ConnectionResetError:
        logger.debug("stream_client_disconnected", user_id=user_id)
    finally:
        store.unsubscribe(user_id, queue)
    return resp


# ── Events & metrics (admin) ────────────────────────────────────


async def _handle_ingest_event(request: web.Request) -> web.Response:
    _require_admin(request)
    event = Event.model_validate(await _body(request))
    source = request.app.get(EVENT_SOURCE_KEY)
    if source is not None:
        try:
            source.push(event)
        except EventSourceClosedError:
            return _error(503, "service shutting down")
        except asyncio.QueueFull:
            return web.json_response(
                {"error": "event queue full, retry later"},
                status=503,
                headers={"Retry-After": "1"},
            )
    else:
        pipeline = request.app.get(PIPELINE_KEY)
        if pipeline is None:
            return _error(503, "no pipeline configured")
        pipeline.submit(event)
    return _json({"accepted": True, "type": event.type}, status=202)


async def _handle_metrics(request: web.Request) -> web.Response:
    _require_admin(request)
    metrics = request.app.get(METRICS_KEY)
    pipeline = request.app.get(PIPELINE_KEY)
    return _json({
        "delivery": metrics.summary() if metrics is not None else {},
        "pipeline": pipeline.stats if pipeline is not None else {},
    })


def create_app(
    rules: RuleStore,
    preferences: PreferenceStore,
    notifications: NotificationStore,
    pipeline: AlertPipeline | None = None,
    event_source: QueueEventSource | None = None,
    metrics: DeliveryMetrics | None = None,
    admin_token: str | None = None,
    heartbeat_secs: float = 15.0,
) -> web.Application:
    """Create the aiohttp web application."""
    app = web.Application(middlewares=[_identity_middleware, _error_middleware])
    app[RULES_KEY] = rules
    app[PREFERENCES_KEY] = preferences
    app[NOTIFICATIONS_KEY] = notifications
    if pipeline is not None:
        app[PIPELINE_KEY] = pipeline
    if event_source is not None:
        app[EVENT_SOURCE_KEY] = event_source
    if metrics is not None:
        app[METRICS_KEY] = metrics
    app[ADMIN_TOKEN_KEY] = admin_token or ""
    app[HEARTBEAT_KEY] = heartbeat_secs

    r = app.router
    r.add_get("/api/health", _handle_health)

    r.add_get("/api/preferences", _handle_get_preferences)
    r.add_put("/api/preferences", _handle_put_preferences)
    r.add_patch("/api/preferences", _handle_patch_preferences)

    r.add_get("/api/rules", _handle_list_rules)
    r.add_post("/api/rules", _handle_create_rule)
    r.add_get("/api/rules/{rule_id}", _handle_get_rule)
    r.add_put("/api/rules/{rule_id}", _handle_update_rule)
    r.add_delete("/api/rules/{rule_id}", _handle_delete_rule)

    r.add_get("/api/notifications", _handle_list_notifications)
    r.add_get("/api/notifications/stats", _handle_stats)
    r.add_get("/api/notifications/stream", _handle_stream)
    r.add_post("/api/notifications/read-all", _handle_mark_all_read)
    r.add_post("/api/notifications/bulk-read", _handle_bulk_read)
    r.add_post("/api/notifications/bulk-delete", _handle_bulk_delete)
    r.add_get("/api/notifications/{notification_id}", _handle_get_notification)
    r.add_delete("/api/notifications/{notification_id}", _handle_delete_notification)
    r.add_post("/api/notifications/{notification_id}/read", _handle_mark_read)

    r.add_post("/api/events", _handle_ingest_event)
    r.add_get("/api/metrics", _handle_metrics)
    return app


async def start_api(
    app: web.Application,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> web.AppRunner:
    """Start the API server. Returns the runner for cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("api_started", host=host, port=port)
    return runner
