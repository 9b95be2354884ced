from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from strawberry.fastapi import GraphQLRouter

from wellnest.api import attendance, commerce, payments, refunds, reservations
from wellnest.api.errors import register_exception_handlers
from wellnest.core.config import settings
from wellnest.core.logging_config import setup_logging, get_logger
from wellnest.graphql.context import build_context
from wellnest.graphql.schema import schema


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    get_logger("main").info("Wellnest API starting environment=%s", settings.environment)
    yield


app = FastAPI(title="Wellnest", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

graphql_app = GraphQLRouter(
    schema=schema,
    context_getter=build_context,
    graphiql=not settings.is_production
)
app.include_router(graphql_app, prefix="/graphql")

for module in (reservations, commerce, payments, refunds, attendance):
    app.include_router(module.router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "ok"}
