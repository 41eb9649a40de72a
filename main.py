import logfire

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from contextlib import asynccontextmanager

from services.setup import SetupBarrier

from utils.config import load_private_key, load_register_options
from utils.logger import configure_logging, instrument_libraries

from routers import warehouse


# Configure logfire BEFORE creating FastAPI app
configure_logging()
instrument_libraries()

@asynccontextmanager
async def lifespan(app: FastAPI):
    logfire.info("Starting Warehouse token application...")

    options = load_register_options()

    #* Setup runs in the background, token endpoints answer 503 until it completes
    app.state.setup_barrier = SetupBarrier(options)
    app.state.setup_barrier.start()
    app.state.private_key = load_private_key()
    logfire.info(f"Requesting setup information from: {options.host}")

    yield

    logfire.info("Shutting down Warehouse token application...")
    app.state.setup_barrier.cancel()
    logfire.info("Application shutdown complete")


app = FastAPI(
    title="Warehouse Token API",
    description="Issues and validates short lived, encrypted tokens granting access to warehouse files.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(warehouse.router)
