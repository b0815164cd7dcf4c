# FastAPI Routers
from src.routers.agent import router as agent_router
from src.routers.conversations import router as conversations_router
from src.routers.skills import router as skills_router

__all__ = [
    "agent_router",
    "conversations_router",
    "skills_router",
]
