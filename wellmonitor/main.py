from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.config import settings
from .core.log import configure_logging

from .api.routes import router as api_router
from .api import routes as routes_module

from .domain.safety import SafetyCycleController
from .drivers.relay_gpio import GpioRelayActuator
from .extraction.orchestrator import ExtractionOrchestrator
from .services.config_store import ConfigStore
from .services.monitor import MonitoringLoop
from .services.wiring import build_actuator, build_image_source, build_orchestrator
from .storage.sqlite_repo import SQLiteRepository


logger = logging.getLogger(__name__)


# --- Singletons ---
# An invalid boot snapshot raises here: there is no last-known-good yet.
config_store = ConfigStore.from_file(settings.config_path)
image_source = build_image_source()
actuator = build_actuator()
orchestrator = build_orchestrator()
controller = SafetyCycleController(actuator)
repo = SQLiteRepository(settings.sqlite_path)
monitor: MonitoringLoop | None = None


def get_monitor() -> MonitoringLoop:
    assert monitor is not None
    return monitor


def get_controller() -> SafetyCycleController:
    return controller


def get_orchestrator() -> ExtractionOrchestrator:
    return orchestrator


def get_config_store() -> ConfigStore:
    return config_store


def get_repo() -> SQLiteRepository:
    return repo


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(
        "Starting %s (image_source=%s, relay=%s, config v%d)",
        settings.app_name, image_source.source_id, actuator.actuator_id, config_store.current().version,
    )

    await repo.init()
    await orchestrator.initialize()

    global monitor
    monitor = MonitoringLoop(
        image_source=image_source,
        orchestrator=orchestrator,
        controller=controller,
        sink=repo,
        config_source=config_store,
    )
    await monitor.start()

    try:
        yield
    finally:
        if monitor:
            await monitor.stop()

        await orchestrator.close()

        if isinstance(actuator, GpioRelayActuator):
            actuator.cleanup()

        logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Make the dependency functions in routes resolve to the real ones
app.dependency_overrides[routes_module.get_monitor] = get_monitor
app.dependency_overrides[routes_module.get_controller] = get_controller
app.dependency_overrides[routes_module.get_orchestrator] = get_orchestrator
app.dependency_overrides[routes_module.get_config_store] = get_config_store
app.dependency_overrides[routes_module.get_repo] = get_repo

app.include_router(api_router, prefix="/api")
