from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import List, Optional, Dict
import asyncio
import logging

from src.core.agent import ChatAgent
from src.core.config import get_settings
from src.tools.registry import build_tools
from src.tools.sandbox import CodeExecutionRequest, PythonSandbox
from src.tools.weather import ForecastRequest, OpenMeteoClient

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Forecast Chat API", version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global State
class SystemState:
    def __init__(self):
        self.weather_client: Optional[OpenMeteoClient] = None
        self.sandbox: Optional[PythonSandbox] = None
        self.agent: Optional[ChatAgent] = None
        self.initialized = False

    def initialize(self):
        if self.initialized:
            return
        self.weather_client = OpenMeteoClient()
        self.sandbox = PythonSandbox()
        self.agent = ChatAgent(tools=build_tools(self.weather_client, self.sandbox))
        self.initialized = True


state = SystemState()


@app.on_event("startup")
async def startup_event():
    logger.info("Initializing tools and chat agent...")
    state.initialize()
    if not state.agent.ready:
        logger.warning("No LLM configured; /api/chat is disabled")
    logger.info("Initialization Complete.")


# --- Schemas ---
class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    model: str = "openrouter"  # or "groq"
    history: List[Dict[str, str]] = []


# --- Endpoints ---

@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "agent_ready": bool(state.agent and state.agent.ready),
    }


@app.post("/api/chat")
async def chat_endpoint(req: ChatRequest):
    if not (state.agent and state.agent.ready):
        raise HTTPException(status_code=503, detail="No LLM configured")

    return await asyncio.to_thread(state.agent.run, req.message, req.history, req.model)


@app.post("/api/tools/weather")
async def tool_weather(req: ForecastRequest):
    result = await asyncio.to_thread(state.weather_client.get_forecast, req)
    return result.to_dict()


@app.post("/api/tools/analyze")
async def tool_analyze(req: CodeExecutionRequest):
    result = await asyncio.to_thread(state.sandbox.execute, req)
    return result.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
