from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from strawberry.fastapi import GraphQLRouter
from strawberry.subscriptions import GRAPHQL_TRANSPORT_WS_PROTOCOL, GRAPHQL_WS_PROTOCOL
from config import ENVIRONMENT, PORT, init_db, setup_logging
from dependencies.context import build_context_getter
from schema import schema
from utils.pubsub import PubSub
import logging

logger = logging.getLogger(__name__)

IS_PRODUCTION = ENVIRONMENT == "prod"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_db()
    logger.info(f"EcoSwift API ready ({ENVIRONMENT})")
    yield
    logger.info("EcoSwift API shutting down")


def create_app(pubsub: PubSub = None) -> FastAPI:
    """Build the FastAPI app with the GraphQL endpoint bound to one event relay"""
    pubsub = pubsub or PubSub()

    app = FastAPI(
        title="EcoSwift Commerce API",
        description="GraphQL API for EcoSwift, a marketplace connecting eco-friendly vendors and buyers.",
        version="1.0.0",
        root_path="/Prod" if IS_PRODUCTION else "",
        lifespan=lifespan,
    )
    app.state.pubsub = pubsub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    graphql_router = GraphQLRouter(
        schema,
        context_getter=build_context_getter(pubsub),
        graphql_ide=None if IS_PRODUCTION else "graphiql",
        subscription_protocols=[GRAPHQL_TRANSPORT_WS_PROTOCOL, GRAPHQL_WS_PROTOCOL],
    )
    app.include_router(graphql_router, prefix="/graphql")

    @app.get("/", response_class=HTMLResponse)
    def home():
        """This is the first and default route for the EcoSwift Backend"""
        return """
        <html>
          <head>
            <title>EcoSwift API</title>
            <style>
              body { font-family: Arial, sans-serif; margin: 40px; background-color: #f8f9fa; }
              h1 { color: #333; }
              ul { list-style-type: none; padding: 0; }
              li { margin: 10px 0; }
              a { color: #0066cc; text-decoration: none; }
              a:hover { text-decoration: underline; }
              hr { margin: 20px 0; }
              h2 { color: #555; }
            </style>
          </head>
          <body>
            <h1>Welcome to EcoSwift API</h1>
            <hr>
            <ul>
              <li><a href="graphql">GraphQL endpoint and GraphiQL explorer</a></li>
              <li><a href="health">Health check</a></li>
              <hr>
              <h2>E-commerce GraphQL API - Built with FastAPI & Strawberry</h2>
            </ul>
          </body>
        </html>
        """

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "environment": ENVIRONMENT,
            "subscriptions": pubsub.subscriber_count(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    # lifespan="on" makes a failed database connection abort startup
    uvicorn.run(app, host="0.0.0.0", port=PORT, lifespan="on")
