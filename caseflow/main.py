"""
FastAPI Main Application Entry Point.

Configures and runs the Caseflow workflow engine API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import RedirectResponse

from .config import config

logging.basicConfig(
    level=config.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

from .api.routes import (  # noqa: E402
    router as workflow_router,  # noqa: E402
    tool_router,  # noqa: E402
    get_engine,  # noqa: E402
    get_websocket_manager,  # noqa: E402
)
from .core.tools import get_global_registry  # noqa: E402
from .workflows.case_tools import register_case_tools  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Registers the case tools and wires execution events to WebSocket clients.
    """
    logger = logging.getLogger("caseflow")

    # Startup
    logger.info("Starting Caseflow workflow engine...")

    register_case_tools()
    engine = get_engine()

    for workflow in engine.list_workflows():
        logger.info(
            "Registered workflow: %s (ID: %s, %d steps)",
            workflow.name,
            workflow.id,
            len(workflow.steps),
        )

    ws_manager = get_websocket_manager()

    async def broadcast_event(event: dict):
        execution_id = event.get("execution_id")
        if execution_id:
            await ws_manager.broadcast(execution_id, event)

    engine.on_event(broadcast_event)

    tools = get_global_registry().list_tools()
    logger.info("Registered %s tools: %s", len(tools), [t["name"] for t in tools])

    yield

    # Shutdown
    engine.off_event(broadcast_event)
    logger.info("Shutting down Caseflow workflow engine...")


app = FastAPI(
    title="Caseflow Workflow Engine",
    description="""
A resumable, step-based workflow engine for case management.

## Features

- **Workflows**: Ordered tool invocations declared as code
- **Checkpoints**: Executions pause for approval, input, verification or review
- **References**: Steps consume earlier outputs (`$create_signal.signalId`)
- **Conditions**: Steps run only when their condition holds
- **Partial failure**: Retry-once and optional steps
- **Events**: WebSocket streaming of execution events

## Example

`signal_create` waits for approval, then creates the signal and reports its
signal number.
    """,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(workflow_router)
app.include_router(tool_router)


@app.get("/", tags=["Health"])
async def root():
    """Redirect root to the interactive API docs (Swagger UI)."""
    return RedirectResponse(url="/docs")


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.host, port=config.port)
