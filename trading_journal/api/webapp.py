from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from trading_journal.api.service import JournalService
from trading_journal.utils.config import Settings, get_settings
from trading_journal.utils.exceptions import DeserializationError, JournalError, TradeValidationError
from trading_journal.utils.logger import get_logger

logger = get_logger(__name__)


def get_service(request: Request) -> JournalService:
    return request.app.state.journal


def create_app(service: Optional[JournalService] = None,
               settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Trading Journal", version="1.0")
    app.state.journal = service or JournalService.from_settings(settings)

    @app.exception_handler(TradeValidationError)
    async def validation_error_handler(request: Request, exc: TradeValidationError) -> JSONResponse:
        logger.warning("trade_validation_error", path=request.url.path, error=exc.message)
        return JSONResponse({"error": exc.message, "details": exc.errors}, status_code=422)

    @app.exception_handler(DeserializationError)
    async def deserialization_error_handler(request: Request, exc: DeserializationError) -> JSONResponse:
        logger.warning("deserialization_error", path=request.url.path, error=exc.message)
        return JSONResponse({"error": exc.message}, status_code=400)

    @app.exception_handler(JournalError)
    async def journal_error_handler(request: Request, exc: JournalError) -> JSONResponse:
        logger.error("journal_error", path=request.url.path, error=str(exc))
        return JSONResponse({"error": exc.message}, status_code=500)

    # ────────────────────────────────────────────────────────────
    # Trades
    # ────────────────────────────────────────────────────────────

    @app.get("/api/status")
    async def status(request: Request) -> dict[str, Any]:
        return get_service(request).storage_status()

    @app.post("/api/status/reload")
    async def reload(request: Request) -> dict[str, Any]:
        return get_service(request).reload_trades()

    @app.get("/api/trades")
    async def list_trades(request: Request) -> dict[str, Any]:
        p = request.query_params
        try:
            return get_service(request).list_trades(
                text=p.get("q", ""),
                sort_key=p.get("sort", "timestamp"),
                descending=p.get("order", "desc").lower() != "asc",
            )
        except ValueError as e:
            raise HTTPException(400, str(e))

    @app.post("/api/trades", status_code=201)
    async def create_trade(request: Request) -> dict[str, Any]:
        body = await _json_object(request)
        return get_service(request).create_trade(body)

    @app.delete("/api/trades")
    async def clear_trades(request: Request) -> dict[str, Any]:
        return {"cleared": get_service(request).clear_trades()}

    @app.post("/api/trades/import")
    async def import_trades(request: Request) -> dict[str, Any]:
        content = await request.body()
        imported = get_service(request).import_trades(content)
        return {"imported": imported}

    @app.get("/api/trades/export")
    async def export_trades(request: Request) -> Response:
        svc = get_service(request)
        return Response(
            content=svc.export_trades(),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{svc.export_filename}"'},
        )

    @app.get("/api/trades/{trade_id}")
    async def get_trade(request: Request, trade_id: str) -> dict[str, Any]:
        trade = get_service(request).get_trade(trade_id)
        if trade is None:
            raise HTTPException(404, "Trade not found")
        return trade

    @app.put("/api/trades/{trade_id}")
    async def update_trade(request: Request, trade_id: str) -> dict[str, Any]:
        body = await _json_object(request)
        trade = get_service(request).update_trade(trade_id, body)
        if trade is None:
            raise HTTPException(404, "Trade not found")
        return trade

    @app.delete("/api/trades/{trade_id}")
    async def delete_trade(request: Request, trade_id: str) -> dict[str, Any]:
        return {"deleted": get_service(request).delete_trade(trade_id)}

    # ────────────────────────────────────────────────────────────
    # Statistics
    # ────────────────────────────────────────────────────────────

    @app.get("/api/stats/summary")
    async def stats_summary(request: Request) -> dict[str, Any]:
        return get_service(request).get_summary()

    @app.get("/api/stats/dashboard")
    async def stats_dashboard(request: Request) -> dict[str, Any]:
        return get_service(request).get_dashboard()

    @app.get("/api/stats/weekly")
    async def stats_weekly(request: Request) -> dict[str, Any]:
        weekly = get_service(request).get_weekly_summary()
        if weekly is None:
            return {"no_data": True}
        return {"no_data": False, **weekly}

    return app


async def _json_object(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(400, "Request body must be valid JSON")
    if not isinstance(body, dict):
        raise HTTPException(400, "Request body must be a JSON object")
    return body
