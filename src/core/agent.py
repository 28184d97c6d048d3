"""
Chat Agent: LangGraph tool-use agent with native function calling.

Binds the forecast and Python tools to an OpenAI-compatible chat model.
Each user turn gets at most one round of tool calls; the model then answers
from the tool results. Nothing is persisted between turns.

Supports both OpenRouter (Llama 3.3 70B, primary) and Groq (Llama 3.3 70B, fallback).
"""

import json
import logging
import operator
import re
from typing import Annotated, Any, Dict, List, Optional, TypedDict

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
from langchain_groq import ChatGroq
from langchain_openai import ChatOpenAI
from langgraph.graph import END, START, StateGraph
from langgraph.graph.message import add_messages

from src.core.config import get_settings

logger = logging.getLogger(__name__)

# Tool rounds per user turn before the model must answer
MAX_TOOL_ROUNDS = 1

# Prior chat messages forwarded to the model
HISTORY_WINDOW = 6

SYSTEM_PROMPT = """\
You are a helpful assistant with two tools.

## Tools
- **get_weather_forecast**: daily forecast (up to 7 days) for a latitude/longitude. \
Resolve place names to coordinates yourself before calling it.
- **execute_python**: runs a short Python 3 snippet and returns stdout, stderr and \
exit code. Use it for calculations and data analysis. Print the values you need.

## Rules
- Base weather answers ONLY on tool results. Never invent forecast numbers.
- If a tool returns an "error" field or a non-zero exitCode, say what went wrong.
- Weather codes follow the WMO convention (0 clear, 1-3 cloudy, 61-65 rain, 71-75 snow, 95+ thunderstorm).
- Be concise. NEVER include <think> tags or internal reasoning in your response.
"""


# ── LangGraph State ──────────────────────────────────────────────


class AgentState(TypedDict):
    """State schema for the LangGraph agent."""

    messages: Annotated[list, add_messages]
    tool_calls_log: Annotated[list, operator.add]
    tool_rounds: int


# ── Agent Orchestrator ───────────────────────────────────────────


class ChatAgent:
    """
    LangGraph-powered agent with native function calling.

    Architecture:
      - ChatOpenAI / ChatGroq with .bind_tools() for native function calling
      - StateGraph: START → agent → should_continue → (tools | END), tools → agent
      - After MAX_TOOL_ROUNDS the agent node calls the model without tools
    """

    def __init__(self, tools: Optional[List[BaseTool]] = None, llm: Any = None):
        self.settings = get_settings()
        self._tools = tools or []
        self._tools_by_name: Dict[str, BaseTool] = {t.name: t for t in self._tools}

        self._llm_openrouter: Optional[ChatOpenAI] = None
        self._llm_groq: Optional[ChatGroq] = None
        self._llm_override = llm

        if llm is None and self.settings.openrouter_api_key:
            self._llm_openrouter = ChatOpenAI(
                base_url=self.settings.openrouter_base_url,
                api_key=self.settings.openrouter_api_key,
                model=self.settings.openrouter_model,
                temperature=0.1,
                max_tokens=2048,
            )
            logger.info(f"Chat agent: OpenRouter LLM ready ({self.settings.openrouter_model})")

        if llm is None and self.settings.groq_api_key:
            self._llm_groq = ChatGroq(
                api_key=self.settings.groq_api_key,
                model=self.settings.groq_model,
                temperature=0.3,
                max_tokens=1024,
            )
            logger.info(f"Chat agent: Groq LLM ready ({self.settings.groq_model})")

        self._graph = self._build_graph()

    @property
    def ready(self) -> bool:
        return bool(self._llm_override or self._llm_openrouter or self._llm_groq)

    # ── LLM Accessors ────────────────────────────────────────────

    def _get_llm(self, model: str = "openrouter"):
        """Get the chat model for the given provider name."""
        if self._llm_override is not None:
            return self._llm_override
        if model == "groq" and self._llm_groq:
            return self._llm_groq
        if self._llm_openrouter:
            return self._llm_openrouter
        if self._llm_groq:
            return self._llm_groq
        raise ValueError("No LLM configured — set OPENROUTER_API_KEY or GROQ_API_KEY")

    def _get_llm_with_tools(self, model: str = "openrouter"):
        llm = self._get_llm(model)
        if self._tools:
            return llm.bind_tools(self._tools)
        return llm

    # ── LangGraph Construction ───────────────────────────────────

    def _build_graph(self) -> Any:
        graph = StateGraph(AgentState)

        graph.add_node("agent", self._agent_node)
        graph.add_node("tools", self._tools_node)

        graph.add_edge(START, "agent")
        graph.add_conditional_edges(
            "agent",
            self._should_continue,
            {"tools": "tools", "end": END},
        )
        graph.add_edge("tools", "agent")

        return graph.compile()

    def _agent_node(self, state: AgentState, config: RunnableConfig = None) -> dict:
        """LLM decides: call a tool or produce a final answer."""
        model = (config or {}).get("configurable", {}).get("model", "openrouter")

        if state.get("tool_rounds", 0) >= MAX_TOOL_ROUNDS:
            llm = self._get_llm(model)
        else:
            llm = self._get_llm_with_tools(model)

        response = llm.invoke(state["messages"])

        if isinstance(response.content, str) and response.content:
            cleaned = _strip_think_tags(response.content)
            if cleaned != response.content:
                response = AIMessage(
                    content=cleaned,
                    tool_calls=getattr(response, "tool_calls", []) or [],
                    id=response.id,
                )

        return {"messages": [response]}

    def _tools_node(self, state: AgentState) -> dict:
        """Execute tool calls from the last AI message."""
        last_msg = state["messages"][-1]
        tool_messages = []
        new_tool_log = []

        for tc in last_msg.tool_calls:
            tool_name = tc["name"]
            tool_args = tc["args"]

            logger.info(f"Tool call: {tool_name}({tool_args})")

            tool_fn = self._tools_by_name.get(tool_name)
            if tool_fn is None:
                result: Any = {"error": f"tool '{tool_name}' not found"}
            else:
                try:
                    result = tool_fn.invoke(tool_args)
                except Exception as e:
                    # Argument validation failures land here
                    logger.error(f"Tool {tool_name} failed: {e}")
                    result = {"error": f"Tool error: {e}"}

            obs = json.dumps(result, default=str)
            tool_messages.append(ToolMessage(content=obs, tool_call_id=tc["id"]))
            new_tool_log.append({"tool": tool_name, "args": tool_args, "result": result})

        return {
            "messages": tool_messages,
            "tool_calls_log": new_tool_log,
            "tool_rounds": state.get("tool_rounds", 0) + 1,
        }

    @staticmethod
    def _should_continue(state: AgentState) -> str:
        """Route: tool calls within the round budget → 'tools', else → 'end'."""
        last_msg = state["messages"][-1]
        if not getattr(last_msg, "tool_calls", None):
            return "end"
        if state.get("tool_rounds", 0) >= MAX_TOOL_ROUNDS:
            logger.warning("Tool round limit reached; ignoring further tool calls")
            return "end"
        return "tools"

    # ── Entry Point ──────────────────────────────────────────────

    def run(
        self,
        user_query: str,
        chat_history: Optional[List[Dict[str, str]]] = None,
        model: str = "openrouter",
    ) -> Dict[str, Any]:
        """
        Answer one user message.

        Returns:
            {"answer": str, "tool_calls": list}
        """
        initial_state: AgentState = {
            "messages": _build_messages(user_query, chat_history),
            "tool_calls_log": [],
            "tool_rounds": 0,
        }
        config = {
            "recursion_limit": MAX_TOOL_ROUNDS * 2 + 3,
            "configurable": {"model": model},
        }

        try:
            final_state = self._graph.invoke(initial_state, config=config)
        except Exception as e:
            logger.error(f"Agent execution failed: {e}")
            return {"answer": f"I encountered an error: {e}", "tool_calls": []}

        answer = ""
        for msg in reversed(final_state["messages"]):
            if isinstance(msg, AIMessage) and msg.content and not msg.tool_calls:
                answer = msg.content
                break

        return {
            "answer": answer or "I was unable to formulate an answer.",
            "tool_calls": final_state.get("tool_calls_log", []),
        }


# ── Helper Functions ─────────────────────────────────────────────


def _strip_think_tags(text: str) -> str:
    """Remove <think>...</think> blocks from LLM output."""
    return re.sub(r"<think>[\s\S]*?</think>", "", text).strip()


def _build_messages(
    user_query: str,
    chat_history: Optional[List[Dict[str, str]]] = None,
) -> List[BaseMessage]:
    messages: List[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT)]

    if chat_history:
        for msg in chat_history[-HISTORY_WINDOW:]:
            role = msg.get("role", "")
            content = msg.get("content", "")
            if role == "user":
                messages.append(HumanMessage(content=content))
            elif role in ("assistant", "agent"):
                messages.append(AIMessage(content=content))

    messages.append(HumanMessage(content=user_query))
    return messages
