#!/usr/bin/env python3
"""
Wallet Protection Monitor - CLI Entry Point

Real-time wallet risk scoring with automated protection
(on-chain lock, judicial freeze requests) for the ledger contract.

Usage:
    python main.py serve             # Start API server (indexer runs inside)
    python main.py watch             # Run the indexer and protection pipeline headless
    python main.py status <addr>     # Show protection status of a wallet
    python main.py simulate <addr>   # Replay a synthetic drain attack offline
"""

import asyncio
import argparse
import logging
import sys
import json

import structlog
import uvicorn

from wallet_protection.config import get_settings
from wallet_protection.models import BlockMeta
from wallet_protection.protection import create_protection_system


def configure_logging(level: str = "INFO", json_logs: bool = False):
    """Configure structured logging."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()


async def cmd_serve(args):
    """Start the API server."""
    settings = get_settings()

    logger.info(
        "Starting Wallet Protection Monitor",
        host=settings.host,
        port=settings.port,
        debug=settings.debug
    )

    config = uvicorn.Config(
        "wallet_protection.api:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )
    server = uvicorn.Server(config)
    await server.serve()


async def cmd_watch(args):
    """Run the indexer and protection pipeline until interrupted."""
    settings = get_settings()
    if not settings.ledger_configured:
        print("Error: RPC_URL and LEDGER_CONTRACT_ADDRESS must be set to watch the ledger")
        sys.exit(1)

    protection = create_protection_system(settings)
    await protection.start()

    try:
        while True:
            await asyncio.sleep(args.report_interval)
            stats = protection.get_stats()
            logger.info(
                "Indexer stats",
                listening=stats["indexer"]["is_listening"],
                events=stats["indexer"]["event_counts"],
                profiles=stats["risk_scorer"]["total_profiles"],
                high_risk=stats["risk_scorer"]["high_risk"]
            )
    except asyncio.CancelledError:
        pass
    finally:
        await protection.stop()


async def cmd_status(args):
    """Show the protection status of a wallet."""
    protection = create_protection_system(get_settings())
    try:
        status = await protection.get_wallet_status(args.address)

        print(f"\n{'='*60}")
        print(f"Wallet Protection Status")
        print(f"{'='*60}")
        print(f"Wallet:      {status['wallet']}")
        print(f"Blacklisted: {status['is_blacklisted']}")
        print(f"Whitelisted: {status['is_whitelisted']}")

        on_chain = status["on_chain_status"]
        if on_chain is None:
            print("On-chain:    unavailable")
        else:
            print(f"Locked:      {on_chain['is_locked']}")
            print(f"Reason code: {on_chain['reason_code']}")
            print(f"Case hash:   {on_chain['case_hash']}")
            print(f"Locked at:   {on_chain['locked_at']}")

        if args.json:
            print(f"\n{json.dumps(status, indent=2, default=str)}")

    finally:
        await protection.stop()


async def cmd_simulate(args):
    """Feed a synthetic drain attack through the pipeline without a ledger."""
    # offline: no ledger, no guard, no webhook
    settings = get_settings().model_copy(update={"rpc_url": None, "alert_webhook_url": None})
    protection = create_protection_system(settings)
    indexer = protection.indexer
    wallet = args.address.lower()

    try:
        for i in range(args.transfers):
            recipient = f"0x{(i + 1):040x}"
            labels = await indexer.on_transfer(
                wallet, recipient, 10**18,
                BlockMeta(block_number=i + 1, tx_hash=f"0xsim{i:060x}")
            )
            score = protection.risk_scorer.get_score(wallet)
            flagged = ", ".join(label.type.value for label in labels) or "-"
            print(f"transfer #{i + 1:<3} -> {recipient[:12]}...  labels: {flagged:<40} score: {score}")

        if args.approval:
            labels = await indexer.on_approval(wallet, "0x" + "ab" * 20, 2**256 - 1)
            print(f"unlimited approval          labels: {labels[0].type.value:<40} score: {protection.risk_scorer.get_score(wallet)}")

        print(f"\n{'='*60}")
        print("Alerts")
        print(f"{'='*60}")
        for alert in protection.alerts.get_alerts(wallet=wallet):
            print(f"  [{alert.level.value:<8}] {alert.message}")

        profile = protection.risk_scorer.get_profile(wallet)
        if profile:
            print(f"\nFinal score: {profile.current_score} (highest {profile.highest_score}, flags {profile.flag_count})")
            print(f"Auto-lock:   {protection.risk_scorer.should_auto_lock(wallet)}")

    finally:
        await protection.stop()


def main():
    parser = argparse.ArgumentParser(
        description="Wallet Protection Monitor CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve command
    subparsers.add_parser("serve", help="Start API server")

    # watch command
    watch_parser = subparsers.add_parser("watch", help="Run the protection pipeline headless")
    watch_parser.add_argument(
        "--report-interval", "-r",
        type=float,
        default=60.0,
        help="Seconds between stats log lines (default: 60)"
    )

    # status command
    status_parser = subparsers.add_parser("status", help="Show wallet protection status")
    status_parser.add_argument("address", help="Wallet address")
    status_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Replay a synthetic drain attack")
    simulate_parser.add_argument("address", help="Wallet address to simulate")
    simulate_parser.add_argument(
        "--transfers", "-t",
        type=int,
        default=12,
        help="Number of rapid outgoing transfers (default: 12)"
    )
    simulate_parser.add_argument("--approval", action="store_true", help="Finish with an unlimited approval")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    # Run the appropriate command
    commands = {
        "serve": cmd_serve,
        "watch": cmd_watch,
        "status": cmd_status,
        "simulate": cmd_simulate
    }

    try:
        asyncio.run(commands[args.command](args))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
