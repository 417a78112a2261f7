from fastapi import APIRouter, Depends

from notifier.bootstrap import ServiceContainer
from notifier.interfaces.api.dependencies import get_container

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(container: ServiceContainer = Depends(get_container)) -> dict[str, object]:
    online = await container.presence.online_recipients()
    return {
        "status": "ok" if container.database.is_connected else "degraded",
        "database": container.database.is_connected,
        "push_queue": container.queue.is_running,
        "pending_push_jobs": container.queue.pending,
        "providers": [provider.family.value for provider in container.providers],
        "online_recipients": len(online),
        "connections": container.presence.connection_count(),
    }
