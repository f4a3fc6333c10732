"""
GOAP Kernel API — FastAPI endpoints.

Operational surface over the shared services and registered agents:
- Agent listing, world state inspection and task triggering
- Provider health checks
- Response cache statistics and clearing
- Performance metrics
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from goap_kernel.bootstrap import Services, build_services
from goap_kernel.ebook.registry import build_ebook_agent
from goap_kernel.errors import (
    ActionTimedOut,
    GatewayError,
    GoalNotFound,
    GoapKernelError,
    PlanningError,
)
from goap_kernel.execution.executor import AgentExecutor


# --- Request/Response Models ---

class TaskRequest(BaseModel):
    goal: str
    context: Any = None


class TaskResponse(BaseModel):
    task_id: str
    goal: str
    status: str
    actions: list
    duration_seconds: float
    result: Any = None


class ResetRequest(BaseModel):
    state: Optional[Dict[str, Any]] = None


def error_status(exc: GoapKernelError) -> int:
    """HTTP status for a kernel error."""
    if isinstance(exc, GoalNotFound):
        return 404
    if isinstance(exc, PlanningError):
        return 422
    if isinstance(exc, ActionTimedOut):
        return 504
    if isinstance(exc, GatewayError):
        return 502
    return 500


# --- Application Factory ---

def create_app(
    services: Optional[Services] = None,
    agents: Optional[Iterable[AgentExecutor]] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    svc = services or build_services(setup_logging=True)
    if agents is None:
        agents = [build_ebook_agent(
            svc.gateway,
            monitor=svc.monitor,
            planner_config=svc.settings.planner_config(),
            executor_config=svc.settings.executor_config(),
        )]
    registry: Dict[str, AgentExecutor] = {a.name: a for a in agents}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await svc.shutdown()

    app = FastAPI(
        title="GOAP Kernel API",
        description="Goal-oriented action planning with a resilient provider gateway",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store components on app state for access in endpoints
    app.state.services = svc
    app.state.agents = registry

    @app.exception_handler(GoapKernelError)
    async def kernel_error_handler(request: Request, exc: GoapKernelError):
        return JSONResponse(status_code=error_status(exc), content=exc.to_dict())

    def get_agent(name: str) -> AgentExecutor:
        agent = registry.get(name)
        if agent is None:
            raise HTTPException(404, "Agent not found")
        return agent

    # === AGENTS ===

    @app.get("/agents")
    def list_agents():
        """Registered agents with their goals and actions."""
        return [
            {
                "name": a.name,
                "goals": [{"name": g.name, "priority": g.priority} for g in a.goals],
                "actions": [{"name": x.name, "cost": x.cost} for x in a.actions],
            }
            for a in registry.values()
        ]

    @app.get("/agents/{name}/state")
    def get_agent_state(name: str):
        """Current world state and the status of the last task."""
        agent = get_agent(name)
        last = agent.last_outcome
        return {
            "world_state": agent.world_store.get_state_snapshot(),
            "last_task": None if last is None else {
                "task_id": last.task_id,
                "goal": last.goal,
                "status": last.status.value,
            },
        }

    @app.post("/agents/{name}/reset")
    def reset_agent(name: str, req: ResetRequest):
        """Replace the agent's world state (host-driven)."""
        agent = get_agent(name)
        agent.world_store.reset(req.state or {})
        return {"status": "reset", "world_state": agent.world_store.get_state_snapshot()}

    @app.post("/agents/{name}/tasks", response_model=TaskResponse)
    async def run_task(name: str, req: TaskRequest):
        """Plan and execute a goal; returns when the task finishes."""
        agent = get_agent(name)
        outcome = await agent.execute_task(req.goal, req.context)
        return TaskResponse(
            task_id=outcome.task_id,
            goal=outcome.goal,
            status=outcome.status.value,
            actions=outcome.plan.action_names if outcome.plan else [],
            duration_seconds=outcome.duration_seconds,
            result=jsonable_encoder(outcome.result),
        )

    # === PROVIDERS ===

    @app.get("/providers")
    def list_providers():
        gateway = svc.gateway
        return {
            "configured": gateway.providers,
            "fallback_order": gateway.fallback_order,
        }

    @app.get("/providers/health")
    async def provider_health():
        """Cache-bypassing round trip to each provider in the fallback order."""
        return await svc.gateway.health_check()

    # === CACHE ===

    @app.get("/cache/stats")
    def cache_stats():
        return svc.gateway.cache_stats().model_dump()

    @app.delete("/cache")
    def clear_cache():
        svc.gateway.clear_cache()
        return {"status": "cleared"}

    # === METRICS ===

    @app.get("/metrics")
    def get_metrics(window_seconds: Optional[float] = None):
        """Aggregated performance stats, optionally over a recent window."""
        return svc.monitor.stats(window_seconds).model_dump(mode="json")

    return app
