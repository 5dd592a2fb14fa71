#!/usr/bin/env python3
"""Scan session demo for the DSN OCR confidence engine.

Replays a synthetic sequence of OCR frames through a FrameAnalyzer and
prints what the engine decided for each one:
1. Per-frame stabilization and composite scoring
2. The scan state machine's resolved outcome
3. Manual entry validation for a typed fallback

Usage:
    python scripts/demo.py
    python scripts/demo.py --mode conservative --expected-type battery_01
    python scripts/demo.py --lux 15 --debug
"""

import argparse

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dsn_ocr.core.config import OcrConfidenceConfig
from dsn_ocr.core.logging import configure_logging
from dsn_ocr.core.models import ComponentType
from dsn_ocr.environment import EnvironmentalScorer
from dsn_ocr.fusion import DecisionState, DispositionAction
from dsn_ocr.pipeline import FrameAnalyzer

console = Console()

# (timestamp, [(text, native confidence, [left, top, right, bottom])])
DEMO_FRAMES = [
    (0.00, [("G0G46K123456789", 0.81, [100, 200, 220, 230]), ("MADE IN USA", 0.97, [90, 260, 200, 280])]),
    (0.10, [("G0G46K123456789", 0.83, [101, 200, 221, 230])]),
    (0.35, [("GOG46K123456789", 0.86, [102, 201, 222, 231])]),
    (0.70, [("G0G46K12345678O", 0.88, [101, 199, 221, 229]), ("XYZ-RANDOM", 0.99, None)]),
    (1.05, [("G0G46K123456789", 0.94, [100, 200, 220, 230])]),
]

STATE_COLORS = {
    DecisionState.AUTO_ACCEPTED: "green",
    DecisionState.PENDING_CONFIRMATION: "yellow",
    DecisionState.MANUAL_ENTRY_REQUIRED: "red",
}


def main():
    parser = argparse.ArgumentParser(description="DSN OCR Confidence Engine Demo")
    parser.add_argument("--mode", default="balanced", help="Sensitivity mode (conservative/balanced/aggressive)")
    parser.add_argument("--expected-type", default=None, help="Component type being scanned")
    parser.add_argument("--lux", type=float, default=None, help="Ambient light reading to feed the scorer")
    parser.add_argument("--manual-entry", default="xk#9", help="Text to run through manual entry validation")
    parser.add_argument("--debug", action="store_true", help="Show engine debug logs")

    args = parser.parse_args()

    if args.debug:
        configure_logging(debug=True)

    expected_type = None
    if args.expected_type:
        try:
            expected_type = ComponentType(args.expected_type.lower())
        except ValueError:
            console.print(f"[red]Error: Unknown component type: {args.expected_type}[/red]")
            return

    config = OcrConfidenceConfig.from_sensitivity_mode(args.mode)
    environment = EnvironmentalScorer()
    if args.lux is not None:
        environment.add_light_sample(args.lux)

    console.print(Panel.fit(
        "[bold blue]DSN OCR - Confidence Fusion Engine[/bold blue]\n"
        f"Mode: {config.sensitivity_mode.value} | "
        f"Expected type: {expected_type.value if expected_type else 'any'} | "
        f"Environment: {environment.score():.2f}",
        border_style="blue",
    ))

    analyzer = FrameAnalyzer(
        config,
        expected_type=expected_type,
        environment=environment,
        session_id="demo",
    )

    # =========================================================================
    # Step 1: Replay Frames
    # =========================================================================
    console.print("\n[bold]Step 1: Replaying OCR Frames[/bold]")

    table = Table(title="Per-Frame Best Reading")
    table.add_column("Time")
    table.add_column("Text")
    table.add_column("Group")
    table.add_column("Native")
    table.add_column("Pattern")
    table.add_column("Stability")
    table.add_column("Composite")
    table.add_column("Decision")

    for timestamp, candidates in DEMO_FRAMES:
        outcome = analyzer.process_frame(candidates, timestamp)

        if outcome is None:
            table.add_row(f"{timestamp:.2f}s", "[dim]dropped[/dim]", "", "", "", "", "", "")
            continue

        best = outcome.best
        if best is None:
            table.add_row(f"{timestamp:.2f}s", "[dim]no reading[/dim]", "", "", "", "", "", "")
            continue

        factors = best.result.factors
        color = STATE_COLORS.get(best.state, "white")
        table.add_row(
            f"{timestamp:.2f}s",
            best.result.text,
            str(best.group_size),
            f"{factors.native_confidence:.2f}",
            f"{factors.pattern_score:.2f}",
            f"{factors.stability_score:.2f}",
            f"{best.result.composite_confidence:.3f}",
            f"[{color}]{best.state.value}[/{color}]",
        )

    console.print(table)

    # =========================================================================
    # Step 2: Session Outcome
    # =========================================================================
    console.print("\n[bold]Step 2: Session Outcome[/bold]")

    machine = analyzer.state_machine
    decision = machine.decision
    if decision is None:
        console.print("[yellow]No DSN resolved; still scanning[/yellow]")
    else:
        color = STATE_COLORS.get(machine.state, "white")
        console.print(Panel(
            f"DSN: [bold]{decision.result.text}[/bold]\n"
            f"Type: {decision.result.component_type.value if decision.result.component_type else 'unknown'} "
            f"({decision.result.tier.value} tier)\n"
            f"Composite: {decision.result.composite_confidence:.3f} "
            f"(auto-accept at {decision.result.threshold_used.manual_verification_threshold:.2f})\n"
            f"Reason: {decision.reason}",
            title=f"[{color}]{machine.state.value}[/{color}]",
            border_style=color,
        ))
        machine.dispose(DispositionAction.ACCEPT)

    # =========================================================================
    # Step 3: Manual Entry Fallback
    # =========================================================================
    console.print("\n[bold]Step 3: Manual Entry Validation[/bold]")

    validation = analyzer.validate_manual_entry(args.manual_entry)
    if validation.is_valid:
        console.print(f"[green]'{args.manual_entry}' accepted as {validation.normalized_text}[/green]")
    else:
        console.print(f"[red]'{args.manual_entry}' rejected: {validation.error}[/red]")

    # =========================================================================
    # Summary
    # =========================================================================
    history = analyzer.confidence_history()
    average = sum(history) / len(history) if history else 0.0
    console.print(Panel.fit(
        f"[bold green]Session Complete![/bold green]\n\n"
        f"Frames: {len(DEMO_FRAMES)}\n"
        f"Readings in history: {len(analyzer.history_snapshot())}\n"
        f"Scores recorded: {len(history)} (avg {average:.3f})\n"
        f"Final state: {machine.state.value}",
        border_style="green",
    ))


if __name__ == "__main__":
    main()
