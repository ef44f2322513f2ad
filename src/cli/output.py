"""
Human-readable terminal output for the CLI.

The engine must explain itself: analytics per instrument, what a cycle
did, and where the paper account stands.
"""

from __future__ import annotations

from typing import Sequence

from execution.models import ClosedTrade, Order
from vwap_core.contracts import InstrumentState, Position
from vwap_core.orchestrator import CycleResult


def _px(value: float | None, precision: int) -> str:
    if value is None or value <= 0:
        return "n/a"
    return f"{value:.{precision}f}"


def format_analytics(state: InstrumentState, precision: int = 5) -> str:
    """VWAP, ADR and volume-profile levels for one instrument."""
    a = state.analytics
    lines = [
        f"--- {state.symbol} ---",
        f"  VWAP    : {_px(a.vwap, precision)}",
        f"  ADR     : {a.adr:.2f} increments" if a.adr > 0 else "  ADR     : n/a",
    ]
    if a.levels is not None:
        lv = a.levels
        lines.append(f"  POC     : {_px(lv.poc_price, precision)}")
        lines.append(f"  HVN     : {_px(lv.hvn_lower, precision)} - {_px(lv.hvn_upper, precision)}")
        lines.append(f"  LVN     : {_px(lv.lvn_lower, precision)} - {_px(lv.lvn_upper, precision)}")
    else:
        lines.append("  Profile : n/a (not enough bars)")
    lines.append(f"  Tradeable: {'yes' if a.is_tradeable() else 'no'}")
    if a.updated_at is not None:
        lines.append(f"  Updated : {a.updated_at.isoformat()}")
    return "\n".join(lines)


def format_cycle(result: CycleResult) -> str:
    """One-line-per-fact summary of an orchestrator cycle."""
    bar = result.bar_time.isoformat() if result.bar_time else "none"
    lines = [
        f"=== Cycle @ {result.now.isoformat()} ===",
        f"Latest bar   : {bar} ({'new' if result.new_bar else 'unchanged'})",
        f"Trading      : {'HALTED (drawdown)' if result.halted else 'active'}",
        f"Entries      : {', '.join(result.entries) if result.entries else 'none'}",
    ]
    for upd in result.stop_updates:
        lines.append(f"Stop moved   : {upd.symbol} {upd.old_stop} -> {upd.new_stop} (stage {upd.stage})")
    for pid in result.closed:
        lines.append(f"Closed       : {pid}")
    lines.append("===")
    return "\n".join(lines)


def format_status(
    positions: Sequence[Position],
    cash: float,
    equity: float,
    closed: Sequence[ClosedTrade] = (),
    orders: Sequence[Order] = (),
) -> str:
    """Open paper positions, cash/equity, recent closed trades and orders."""
    lines = [
        "=== Account Status ===",
        f"Cash         : ${cash:,.2f}",
        f"Equity       : ${equity:,.2f}",
    ]
    if positions:
        for pos in positions:
            lines.append(
                f"Position     : {pos.symbol} {pos.side.value} {pos.size} @ {pos.open_price}"
                f"  SL {pos.stop_loss}  TP {pos.take_profit}"
            )
    else:
        lines.append("Position     : flat (no open positions)")
    if closed:
        lines.append("")
        lines.append(f"Recent closed trades ({len(closed)}):")
        for t in closed:
            lines.append(
                f"  {t.symbol} {t.side} {t.size} {t.open_price} -> {t.close_price}"
                f"  PnL ${t.pnl:+.2f} ({t.reason})  {t.closed_at.isoformat()}"
            )
    if orders:
        lines.append("")
        lines.append(f"Recent orders ({len(orders)}):")
        for o in orders:
            lines.append(
                f"  {o.timestamp.isoformat()}  {o.symbol} {o.side} {o.size} ({o.order_type})"
                f"  position {o.position_id or '-'}"
            )
    lines.append("===")
    return "\n".join(lines)
