"""FastAPI application for Wallet Protection Monitor."""

from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import structlog

from .config import get_settings
from .protection import WalletProtectionService, create_protection_system

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Wallet Protection Monitor",
    description="Real-time wallet risk scoring, alerting and automated protection",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic models for API
class LockRequest(BaseModel):
    wallet: str
    reason: str
    locked_by: str = Field(alias="lockedBy")

    model_config = {"populate_by_name": True}


class JudicialFreezeRequest(BaseModel):
    wallet: str
    case_hash: str = Field(alias="caseHash")
    requested_by: str = Field(alias="requestedBy")

    model_config = {"populate_by_name": True}


class AcknowledgeRequest(BaseModel):
    acknowledged_by: str = Field(alias="acknowledgedBy")

    model_config = {"populate_by_name": True}


class BlacklistRequest(BaseModel):
    address: str
    reason: str = ""


class WhitelistRequest(BaseModel):
    address: str


class SuspiciousActivityReport(BaseModel):
    wallet: str
    patterns: list[str]


# Global instances
protection: Optional[WalletProtectionService] = None


@app.on_event("startup")
async def startup():
    """Initialize services on startup."""
    global protection
    protection = create_protection_system(get_settings())
    await protection.start()
    logger.info("Wallet Protection Monitor started")


@app.on_event("shutdown")
async def shutdown():
    """Cleanup on shutdown."""
    if protection:
        await protection.stop()
    logger.info("Wallet Protection Monitor stopped")


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc)}


@app.get("/api/v1/protection/stats")
async def get_stats():
    """Get protection system statistics."""
    return {"success": True, "data": protection.get_stats()}


@app.get("/api/v1/protection/wallet/{address}")
async def get_wallet_status(address: str):
    """Get risk profile, cached activity and on-chain lock state of a wallet."""
    status = await protection.get_wallet_status(address)
    return {"success": True, "data": status}


@app.get("/api/v1/protection/wallet/{address}/history")
async def get_wallet_history(address: str):
    """Get the wallet's cached 24h transaction history."""
    history = protection.indexer.get_wallet_history(address)
    return {
        "success": True,
        "data": {
            "wallet": address,
            "transactions": [tx.to_dict() for tx in history],
            "count": len(history),
        },
    }


@app.post("/api/v1/protection/lock")
async def lock_wallet(body: LockRequest):
    """Manual wallet lock."""
    success = await protection.manual_lock(body.wallet, body.reason, body.locked_by)
    return {
        "success": success,
        "message": "Wallet locked successfully" if success else "Failed to lock wallet",
    }


@app.post("/api/v1/protection/judicial-freeze")
async def request_judicial_freeze(body: JudicialFreezeRequest):
    """Submit a judicial freeze request for multi-sig review."""
    result = await protection.request_judicial_freeze(body.wallet, body.case_hash, body.requested_by)
    return {"success": True, "data": result}


@app.post("/api/v1/protection/report")
async def report_suspicious_activity(body: SuspiciousActivityReport):
    """Score externally reported suspicious patterns for a wallet."""
    result = await protection.process_suspicious_activity(body.wallet, body.patterns)
    return {"success": True, "data": result}


@app.get("/api/v1/protection/alerts")
async def get_alerts(
    level: Optional[str] = Query(None, description="LOW, MEDIUM, HIGH or CRITICAL"),
    type: Optional[str] = Query(None, description="risk_score, manual_lock, judicial_freeze, ..."),
    wallet: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    unacknowledged: bool = Query(False)
):
    """Get alerts, newest first, with alert statistics."""
    try:
        alerts = protection.alerts.get_alerts(
            level=level,
            type=type,
            wallet=wallet,
            unacknowledged_only=unacknowledged,
            limit=limit
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "data": {
            "alerts": [a.to_dict() for a in alerts],
            "stats": protection.alerts.get_stats(),
        },
    }


@app.post("/api/v1/protection/alerts/{alert_id}/acknowledge")
async def acknowledge_alert(alert_id: str, body: AcknowledgeRequest):
    """Acknowledge an alert."""
    protection.alerts.acknowledge_alert(alert_id, body.acknowledged_by)
    return {"success": True, "message": "Alert acknowledged"}


@app.get("/api/v1/protection/high-risk")
async def get_high_risk_wallets(threshold: int = Query(50, ge=0, le=100)):
    """Get wallets at or above a risk threshold."""
    wallets = protection.risk_scorer.get_high_risk_wallets(threshold)
    return {
        "success": True,
        "data": {
            "wallets": [p.to_dict() for p in wallets],
            "count": len(wallets),
            "threshold": threshold,
        },
    }


@app.post("/api/v1/protection/blacklist")
async def add_to_blacklist(body: BlacklistRequest):
    protection.risk_scorer.add_to_blacklist(body.address, body.reason)
    return {"success": True, "message": f"{body.address} added to blacklist"}


@app.post("/api/v1/protection/whitelist")
async def add_to_whitelist(body: WhitelistRequest):
    protection.risk_scorer.add_to_whitelist(body.address)
    return {"success": True, "message": f"{body.address} added to whitelist"}


@app.post("/api/v1/protection/wallet/{address}/reset-score")
async def reset_score(address: str):
    """Reset a wallet's risk score after manual review."""
    protection.risk_scorer.reset_score(address)
    return {"success": True, "message": f"Risk score reset for {address}"}


def create_app() -> FastAPI:
    """Factory function for creating the app."""
    return app
