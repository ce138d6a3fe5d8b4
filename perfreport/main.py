# perfreport/main.py
import asyncio
import contextlib
import logging
import os
import uuid
from typing import Any, Callable, Dict

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .audit.runner import BusinessParams, PerformanceReportRunner
from .config import Settings, get_settings
from .database import dispose_engines
from .errors import PipelineCancelled
from .schemas import AnalyzeRequest, ErrorResponse

logger = logging.getLogger("perfreport")

RunnerFactory = Callable[[Settings], PerformanceReportRunner]

DEADLINE_GRACE = 1.0


# ---------------------------
# FastAPI App
# ---------------------------
@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    settings.log_summary()
    yield
    dispose_engines()


app = FastAPI(title="Performance Remediation Report", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_runner_factory() -> RunnerFactory:
    return PerformanceReportRunner.from_settings


def _error(status: int, message: str, guid: str, exc: Exception = None) -> JSONResponse:
    body = ErrorResponse(error=message, type=type(exc).__name__ if exc else None, guid=guid)
    return JSONResponse(body.model_dump(), status_code=status)


def _parse_request(data: Dict[str, Any]) -> AnalyzeRequest:
    try:
        return AnalyzeRequest.model_validate(data)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))


async def _analyze(req: AnalyzeRequest, settings: Settings, make_runner: RunnerFactory) -> JSONResponse:
    guid = req.guid or uuid.uuid4().hex
    params = BusinessParams(
        pages_per_visit=req.page_per_visit,
        ads_per_page=req.ads_per_page,
        visitor_quantity=req.visitor_quantity,
    )
    # At the deadline the retry loop is asked to stop; a run blocked in an
    # external call is cut off DEADLINE_GRACE seconds after one more backoff.
    cancel = asyncio.Event()
    deadline = asyncio.get_running_loop().call_later(settings.AUDIT_TIMEOUT, cancel.set)
    hard_stop = settings.AUDIT_TIMEOUT + settings.RATE_LIMIT_DELAY + DEADLINE_GRACE
    runner = None
    try:
        runner = make_runner(settings)
        result = await asyncio.wait_for(
            runner.run(req.url, guid, params, cancel_event=cancel, passes=req.passes),
            timeout=hard_stop,
        )
    except (asyncio.TimeoutError, PipelineCancelled) as exc:
        logger.error("Performance analyze run for %s did not finish in %.1fs", req.url, settings.AUDIT_TIMEOUT)
        return _error(504, "Analysis timed out", guid, exc)
    except Exception as exc:
        # Details go to the log only.
        logger.exception("Error has been thrown during performance analyze run for %s", req.url)
        return _error(500, "Performance analysis failed", guid, exc)
    finally:
        deadline.cancel()
        if runner is not None:
            await runner.aclose()

    return JSONResponse(result.to_dict(), headers={"X-Report-Id": guid})


# ---------------------------
# Routes
# ---------------------------
@app.get("/healthz")
async def healthz():
    return {"ok": True, "app": "perfreport"}


@app.get("/api/analyze")
async def analyze_query(
    request: Request,
    settings: Settings = Depends(get_settings),
    make_runner: RunnerFactory = Depends(get_runner_factory),
):
    """/api/analyze?url=example.com&guid=...&pagePerVisit=3&adsPerPage=2&visitorQuantity=10000"""
    req = _parse_request(dict(request.query_params))
    return await _analyze(req, settings, make_runner)


@app.post("/api/analyze")
async def analyze_body(
    request: Request,
    settings: Settings = Depends(get_settings),
    make_runner: RunnerFactory = Depends(get_runner_factory),
):
    """Same parameters as the GET variant, as a JSON body. Query values win."""
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Send a JSON object")
    req = _parse_request({**body, **dict(request.query_params)})
    return await _analyze(req, settings, make_runner)


# ---------------------------
# Run Uvicorn (local dev)
# ---------------------------
if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("perfreport.main:app", host="0.0.0.0", port=port, reload=True)
