"""aiohttp application entrypoint."""
from __future__ import annotations

from aiohttp import web
from aiohttp_cors import ResourceOptions, setup as cors_setup

from webhook_service.api.router import setup_routes
from webhook_service.api.routes.inbound import INBOUND_PREFIX
from webhook_service.db.migrations import create_migration_runner
from webhook_service.db.pool import create_pool_hooks
from webhook_service.logging_config import configure_logging
from webhook_service.middleware.signature import create_signature_middleware
from webhook_service.middleware.trace import create_trace_middleware
from webhook_service.services.dependencies import (
    COMPONENTS_KEY,
    WebhookComponents,
    build_components,
)
from webhook_service.settings import Settings, get_settings

SETTINGS_KEY = web.AppKey("settings", Settings)


async def healthcheck(request: web.Request) -> web.Response:
    app_settings = request.app[SETTINGS_KEY]
    return web.json_response(
        {"status": "ok", "service": app_settings.app_name, "env": app_settings.env}
    )


def create_app(
    app_settings: Settings | None = None,
    components: WebhookComponents | None = None,
    *,
    run_scheduler: bool = True,
) -> web.Application:
    app_settings = app_settings or get_settings()
    configure_logging(app_settings.log_level)

    app = web.Application()
    app[SETTINGS_KEY] = app_settings

    # Add trace middleware first (before other middleware)
    app.middlewares.append(create_trace_middleware(app_settings.app_name))
    inbound_enabled = bool(app_settings.inbound_webhook_secret)
    if inbound_enabled:
        app.middlewares.append(
            create_signature_middleware(
                app_settings.inbound_webhook_secret,
                path_prefix=INBOUND_PREFIX,
                signature_header=app_settings.signature_header,
            )
        )

    # Configure CORS first, before adding routes
    cors = cors_setup(
        app,
        defaults={
            origin: ResourceOptions(
                allow_credentials=True,
                expose_headers="*",
                allow_headers="*",
                allow_methods="*",
            )
            for origin in app_settings.cors_allowed_origins
        },
    )

    app.router.add_get("/health", healthcheck)
    setup_routes(app, inbound_enabled=inbound_enabled)

    close_pool = None
    if components is not None:
        app[COMPONENTS_KEY] = components
    elif app_settings.storage_backend == "postgres":
        database_url = str(app_settings.database_url)
        init_pool, close_pool = create_pool_hooks(database_url, app_settings.db_pool_size)
        app.on_startup.append(init_pool)
        app.on_startup.append(create_migration_runner(database_url))

    async def start_components(app: web.Application) -> None:
        if COMPONENTS_KEY not in app:
            app[COMPONENTS_KEY] = build_components(app_settings)
        if run_scheduler:
            await app[COMPONENTS_KEY].scheduler.start(app)

    async def stop_components(app: web.Application) -> None:
        built = app.get(COMPONENTS_KEY)
        if built is None:
            return
        await built.scheduler.stop(app)
        await built.sender.close()

    app.on_startup.append(start_components)
    app.on_cleanup.append(stop_components)
    if close_pool is not None:
        app.on_cleanup.append(close_pool)

    # Add CORS to all routes
    for route in list(app.router.routes()):
        cors.add(route)

    return app


def main() -> None:
    app_settings = get_settings()
    web.run_app(create_app(app_settings), host=app_settings.host, port=app_settings.port)


if __name__ == "__main__":
    main()
