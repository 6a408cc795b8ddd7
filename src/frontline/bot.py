import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from frontline.backend import BackendClient
from frontline.clarifier import Tier3Clarifier
from frontline.config import Settings, validate_config
from frontline.llm import LLMClient
from frontline.loop_detector import LoopDetector, TTLStore
from frontline.runtime import Brain1Runtime

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

validate_config()


class TurnRequest(BaseModel):
    company_id: str
    call_id: str
    text: str = Field(min_length=1)
    call_state: dict | None = None


def build_runtime(settings: Settings) -> tuple[Brain1Runtime, list]:
    """Wire the runtime to the backend and the language model. Returns (runtime, clients to close)."""
    backend = BackendClient(settings.backend_url, api_key=settings.backend_api_key)
    llm = LLMClient(settings.openai_api_key, model=settings.llm_model, timeout=settings.llm_timeout_s)
    runtime = Brain1Runtime(
        backend,
        llm=llm,
        scenario_engine=backend,
        trace_store=backend,
        customer_store=backend,
        vendor_log=backend,
        loop_detector=LoopDetector(TTLStore(ttl_seconds=settings.loop_ttl_s)),
        clarifier=Tier3Clarifier(llm, timeout=settings.clarifier_timeout_s),
        late_turn_threshold=settings.late_turn_threshold,
    )
    return runtime, [backend, llm]


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    runtime, clients = build_runtime(settings)
    app.state.runtime = runtime
    sweeper = runtime.start_sweeper(settings.loop_sweep_interval_s)
    logger.info("Frontline runtime ready (model %s)", settings.llm_model)
    try:
        yield
    finally:
        sweeper.cancel()
        await runtime.drain()
        for client in clients:
            await client.close()


app = FastAPI(title="Frontline Turn Runtime", lifespan=lifespan)


def get_runtime(request: Request) -> Brain1Runtime:
    return request.app.state.runtime


@app.get("/health")
async def health():
    return PlainTextResponse("ok")


@app.post("/turn")
async def turn(body: TurnRequest, runtime: Brain1Runtime = Depends(get_runtime)):
    result = await runtime.process_turn(body.company_id, body.call_id, body.text, body.call_state)
    return result.to_dict()


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8765"))
    uvicorn.run("frontline.bot:app", host="0.0.0.0", port=port)
