"""HTTP surface: manual draw trigger and result lookup."""

from __future__ import annotations

import logging
import random
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import sessionmaker

from .config import DrawSettings
from .db.engine import get_sessionmaker, make_engine
from .draw.engine import DrawStatus
from .draw.errors import (
    DrawTimeoutError,
    FillerExhaustedError,
    InvalidDrawRequestError,
    ResultValidationError,
)
from .draw.lock import DrawLock
from .scheduler import AutoDrawScheduler
from .workflows import get_draw_lock, get_draw_result, trigger_draw

logger = logging.getLogger(__name__)


class DrawTriggerRequest(BaseModel):
    """Body of ``POST /draws/trigger``; camelCase keys are accepted as aliases."""

    model_config = ConfigDict(populate_by_name=True)

    draw_time: Optional[str] = Field(default=None, alias="drawTime")
    draw_date: Optional[str] = Field(default=None, alias="drawDate")
    priority_seller_id: Optional[int] = Field(default=None, alias="loginId")


def create_app(
    session_factory: Optional[sessionmaker] = None,
    *,
    settings: Optional[DrawSettings] = None,
    rng: Optional[random.Random] = None,
    strategy_policy=None,
    lock: Optional[DrawLock] = None,
    run_scheduler: bool = False,
) -> FastAPI:
    """Build the FastAPI application.

    Parameters
    ----------
    session_factory : Optional[sessionmaker], default: None
        Factory used per request; defaults to one bound to ``DB_URL``.
    settings : Optional[DrawSettings], default: None
        Draw settings; read from the environment when omitted.
    rng, strategy_policy, lock
        Forwarded to every settlement, mainly for deterministic tests.
    run_scheduler : bool, default: False
        Start the :class:`~lottoshop.scheduler.AutoDrawScheduler` with the app.
    """

    settings = settings or DrawSettings.from_env()
    factory = session_factory or get_sessionmaker(make_engine())
    draw_lock = lock or get_draw_lock(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        scheduler = None
        if run_scheduler:
            scheduler = AutoDrawScheduler(factory, settings=settings)
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()

    app = FastAPI(
        title="Lottoshop draw API",
        description="Settlement and lookup of 15-minute draw slots",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/draws/trigger")
    def trigger(payload: DrawTriggerRequest) -> JSONResponse:
        try:
            with factory.begin() as session:
                outcome = trigger_draw(
                    session,
                    payload.draw_time,
                    payload.draw_date,
                    payload.priority_seller_id,
                    settings=settings,
                    rng=rng,
                    strategy_policy=strategy_policy,
                    lock=draw_lock,
                )
                body: dict[str, Any] = outcome.to_dict()
        except InvalidDrawRequestError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DrawTimeoutError as exc:
            logger.error(f"Draw trigger timed out: {exc}")
            raise HTTPException(status_code=504, detail=str(exc)) from exc
        except ResultValidationError as exc:
            raise HTTPException(
                status_code=500,
                detail={"message": "Result validation failed", "errors": exc.errors},
            ) from exc
        except FillerExhaustedError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        if outcome.status is DrawStatus.GENERATED:
            return JSONResponse(status_code=201, content=body)
        return JSONResponse(status_code=409, content=body)

    @app.get("/draws/{draw_date}/{draw_slot}")
    def read_result(draw_date: str, draw_slot: str) -> dict[str, Any]:
        try:
            with factory() as session:
                result = get_draw_result(session, draw_date, draw_slot, settings=settings)
                if result is None:
                    raise HTTPException(status_code=404, detail="Result not found")
                return result.to_dict()
        except InvalidDrawRequestError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    return app


__all__ = ["DrawTriggerRequest", "create_app"]
