#!/usr/bin/env python3
"""Command line front-end: balances, flow previews and (opt-in) execution"""

import argparse
import asyncio
from decimal import Decimal
from typing import List, Optional

from .core.chains import chain_display_name, chain_name_to_id
from .core.constants import EARN_MARKETS, find_market
from .core.errors import BoundlessError
from .core.models import Balance, RouteStatus
from .core.wallet import ActiveChainContext
from .logging_config import setup_logging
from .providers.wallet_rpc import RpcWalletSigner
from .services.balances import BalanceService
from .services.liquidity import FlowPreview, LiquidityService
from .services.routing import LifiRoutingService


def print_balances(address: str, balances: List[Balance]) -> None:
    if not balances:
        print("❌ No balances on supported chains")
        return

    total = sum((b.usd_value for b in balances), Decimal("0"))
    print(f"\n💼 {address}")
    print("=" * 60)
    print(f"Total Value: ${total:,.2f} USD")
    print("-" * 60)
    for i, balance in enumerate(sorted(balances, key=lambda b: b.usd_value, reverse=True), 1):
        print(f"{i:2d}. {balance.amount:>18.6f} {balance.asset.symbol:<8} {balance.chain:<20} ${balance.usd_value:,.2f}")


def print_preview(preview: FlowPreview) -> None:
    plan = preview.plan
    print(f"\n🧭 {preview.kind.value.title()} → {chain_display_name(preview.destination_chain_id)}")
    print("=" * 60)
    if preview.requested_usd is not None:
        print(f"Requested: ${preview.requested_usd:,.2f}   Selected: ${preview.selected_usd:,.2f}")
    for i, route in enumerate(plan.routes):
        kind = "direct" if route.is_direct else "routed"
        print(
            f"{i:2d}. {route.asset.label:<28} ${route.asset.usd_value:>10,.2f} → "
            f"${route.estimated_output_usd:>10,.2f} ({kind}, gas ${route.estimated_gas_cost_usd:,.2f})"
        )
    for skipped in plan.skipped_assets:
        print(f"  ⏭  {skipped.asset.label}: {skipped.reason}")
    print("-" * 60)
    print(f"Input ${plan.total_input_usd:,.2f}  Output ≈ ${plan.total_estimated_output_usd:,.2f}  Gas ≈ ${plan.total_gas_cost_usd:,.2f}")
    for warning in preview.warnings:
        print(f"⚠️  {warning}")


def print_status(index: int, status: RouteStatus, message: Optional[str]) -> None:
    icon = {"executing": "⏳", "completed": "✅", "failed": "❌"}.get(status.value, "•")
    print(f"   {icon} route {index}: {status.value}" + (f" ({message})" if message else ""))


async def build_preview(args: argparse.Namespace, service: LiquidityService, balances: List[Balance]) -> FlowPreview:
    if args.flow == "zap":
        market = find_market(args.chain_id, args.token)
        if market is None:
            raise BoundlessError(f"no {args.token} market on {chain_display_name(args.chain_id)}")
        return await service.preview_zap(balances, args.amount, market, args.address)
    if args.flow == "refuel":
        return await service.preview_refuel(balances, args.amount, args.chain_id, args.address)
    if args.flow == "pull":
        return await service.preview_pull(balances, args.amount, args.chain_id, args.token, args.to or args.address)
    return await service.preview_squeeze(
        balances, args.chain_id, args.token, args.to or args.address, requested_usd=args.amount
    )


async def cli_balances(address: str) -> None:
    print(f"🔍 Fetching balances for {address}...")
    balances = await BalanceService().get_balances(address)
    print_balances(address, balances)


async def cli_flow(args: argparse.Namespace) -> None:
    routing = LifiRoutingService()
    service = LiquidityService(routing)
    balances = await BalanceService().get_balances(args.address)
    preview = await build_preview(args, service, balances)
    print_preview(preview)

    if not args.execute:
        return
    if not preview.plan.has_routes:
        print("Nothing to execute.")
        return
    if input("\nSign and execute this plan? [y/N] ").strip().lower() != "y":
        print("Aborted.")
        return

    context = ActiveChainContext(RpcWalletSigner(args.address, rpc_url=args.rpc_url))
    summary = await service.execute(preview, context, print_status)
    print(f"\n{summary.successful_routes}/{summary.total_routes} routes completed")
    for error in summary.errors:
        print(f"   route {error.index}: {error.message}")


def cli_markets() -> None:
    for market in EARN_MARKETS:
        print(f"{market.key:<24} {market.protocol:<8} {market.description}")


def _chain_arg(value: str) -> int:
    chain_id = chain_name_to_id(value)
    if chain_id is None:
        raise argparse.ArgumentTypeError(f"unknown chain: {value}")
    return chain_id


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Boundless CLI")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    balances_parser = subparsers.add_parser("balances", help="Show balances on supported chains")
    balances_parser.add_argument("address", help="Wallet address")

    subparsers.add_parser("markets", help="List earn markets")

    for flow in ("squeeze", "pull", "refuel", "zap"):
        flow_parser = subparsers.add_parser(flow, help=f"Preview (and optionally execute) a {flow}")
        flow_parser.set_defaults(flow=flow)
        flow_parser.add_argument("address", help="Source wallet address")
        flow_parser.add_argument("chain_id", type=_chain_arg, help="Destination chain (name or id)")
        flow_parser.add_argument(
            "--amount",
            type=Decimal,
            required=flow != "squeeze",
            help="USD amount to move",
        )
        flow_parser.add_argument("--token", default="ETH" if flow == "refuel" else "USDC", help="Destination token")
        flow_parser.add_argument("--to", default=None, help="Recipient (defaults to the source wallet)")
        flow_parser.add_argument("--execute", action="store_true", help="Sign and execute after preview")
        flow_parser.add_argument("--rpc-url", default=None, help="Wallet JSON-RPC endpoint")

    return parser


async def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if not args.command:
        parser.print_help()
        return

    try:
        if args.command == "balances":
            await cli_balances(args.address)
        elif args.command == "markets":
            cli_markets()
        else:
            await cli_flow(args)
    except BoundlessError as exc:
        print(f"❌ Error: {exc}")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
