import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from survey_bot import config
from survey_bot.routers import auth, surveys, webhooks
from survey_bot.services.circuit import CircuitClient
from survey_bot.services.oauth import CircuitOAuth
from survey_bot.services.store import SettingsStore
from survey_bot.services.subscriptions import SubscriptionManager
from survey_bot.services.surveys import SurveyRegistry
from survey_bot.templating import STATIC_DIR

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def create_app(store: Optional[SettingsStore] = None,
               client_factory: Callable[[str], CircuitClient] = CircuitClient,
               oauth: Optional[CircuitOAuth] = None,
               restore_sessions: bool = True) -> FastAPI:
    store = store or SettingsStore()
    registry = SurveyRegistry(store)
    subscriptions = SubscriptionManager(store, registry, client_factory=client_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.init()
        if restore_sessions:
            await subscriptions.init()
        yield
        await subscriptions.shutdown()

    app = FastAPI(title="Circuit Survey Bot", lifespan=lifespan)
    app.state.store = store
    app.state.registry = registry
    app.state.subscriptions = subscriptions
    app.state.oauth = oauth or CircuitOAuth()

    app.add_middleware(SessionMiddleware, secret_key=config.SESSION_SECRET)
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(surveys.router)
    app.include_router(auth.router)
    app.include_router(webhooks.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("survey_bot.main:app", host="0.0.0.0", port=config.PORT)
