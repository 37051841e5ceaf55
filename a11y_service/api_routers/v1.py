from fastapi import APIRouter

from a11y_service.features.health.routes.health import router as health_router
from a11y_service.features.results.routes.results import router as results_router
from a11y_service.features.skips.routes.skips import router as skips_router
from a11y_service.features.tasks.routes.tasks import router as tasks_router

api_router = APIRouter()

# /tasks/results must be matched before /tasks/{task_id}
api_router.include_router(results_router)
api_router.include_router(tasks_router)
api_router.include_router(skips_router)
api_router.include_router(health_router)
