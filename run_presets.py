#!/usr/bin/env python3
"""
🎯 Preset Transaction Scenarios
===============================
Pre-configured lifecycle runs from a gentle smoke test to NUCLEAR mode.

Usage:
    python run_presets.py http://127.0.0.1:4466 gentle
    python run_presets.py http://127.0.0.1:4466 abandon-storm --output report.json
    python run_presets.py http://127.0.0.1:4466 nuclear --i-know-what-im-doing
"""

import asyncio
import sys
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from tx_stress_test import RunConfig, RunSummary, run

console = Console()

# =============================================================================
# PRESET CONFIGURATIONS
# =============================================================================

PRESETS = {
    # -------------------------------------------------------------------------
    # ALWAYS-COMMIT PRESETS
    # -------------------------------------------------------------------------
    "gentle": {
        "name": "🌱 Gentle Warmup",
        "description": "A handful of committing clients to verify the backend responds",
        "params": {
            "strategy_name": "simple",
            "concurrency": 5,
            "attempts": 1,
        }
    },
    "moderate": {
        "name": "🏃 Moderate Load",
        "description": "50 committing clients, 5 rounds",
        "params": {
            "strategy_name": "simple",
            "concurrency": 50,
            "attempts": 5,
        }
    },
    "heavy": {
        "name": "🏋️ Heavy Load",
        "description": "200 committing clients contending on one row, 10 rounds",
        "params": {
            "strategy_name": "simple",
            "concurrency": 200,
            "attempts": 10,
            "max_in_flight": 100,
        }
    },

    # -------------------------------------------------------------------------
    # MIXED RESOLUTION PRESETS
    # -------------------------------------------------------------------------
    "mixed-bag": {
        "name": "🎲 Mixed Bag",
        "description": "Commits, rollbacks and abandoned transactions side by side",
        "params": {
            "strategy_name": "mixed",
            "concurrency": 30,
            "attempts": 3,
        }
    },
    "abandon-storm": {
        "name": "👻 Abandon Storm",
        "description": "Many clients walking away mid-transaction; exercises server-side expiry",
        "params": {
            "strategy_name": "mixed",
            "concurrency": 300,
            "attempts": 5,
            "timeout_ms": 2000,
            "max_in_flight": 60,
        }
    },

    # -------------------------------------------------------------------------
    # TIMEOUT PRESETS
    # -------------------------------------------------------------------------
    "timeout-squeeze": {
        "name": "⏱️ Timeout Squeeze",
        "description": "Transactions expire before their updates finish",
        "params": {
            "strategy_name": "simple",
            "concurrency": 100,
            "attempts": 3,
            "timeout_ms": 100,
            "operation_rounds": 4,
        }
    },
    "wait-squeeze": {
        "name": "🚪 Wait Squeeze",
        "description": "More clients than transaction slots with a tiny max wait",
        "params": {
            "strategy_name": "mixed",
            "concurrency": 150,
            "attempts": 3,
            "max_wait_ms": 50,
        }
    },

    # -------------------------------------------------------------------------
    # ☢️ EXTREME
    # -------------------------------------------------------------------------
    "nuclear": {
        "name": "☢️ NUCLEAR",
        "description": "1,000 mixed clients per round for 20 rounds",
        "dangerous": True,
        "params": {
            "strategy_name": "mixed",
            "concurrency": 1000,
            "attempts": 20,
            "timeout_ms": 500,
            "max_wait_ms": 1000,
        }
    },
}


def preset_config(preset_name: str, url: str) -> RunConfig:
    """Build the RunConfig for a preset against the given backend."""
    return RunConfig(base_url=url, **PRESETS[preset_name]["params"])


def print_presets():
    """Print all available presets."""
    console.print("\n[bold]Available Presets:[/bold]\n")

    categories = [
        ("Always Commit", ["gentle", "moderate", "heavy"]),
        ("Mixed Resolution", ["mixed-bag", "abandon-storm"]),
        ("Timeouts", ["timeout-squeeze", "wait-squeeze"]),
        ("☢️ EXTREME", ["nuclear"]),
    ]

    for category, preset_names in categories:
        console.print(f"[bold cyan]{category}:[/bold cyan]")
        for name in preset_names:
            preset = PRESETS[name]
            danger_flag = "[red]⚠️ DANGEROUS[/red] " if preset.get("dangerous") else ""
            console.print(f"  {name:<16} {preset['name']:<22} {danger_flag}- {preset['description']}")
        console.print("")


async def run_preset(
    url: str,
    preset_name: str,
    dangerous_confirmed: bool = False,
    output_path: Optional[str] = None,
) -> Optional[RunSummary]:
    """Run a preset scenario. Returns None when it was not run."""
    if preset_name not in PRESETS:
        console.print(f"[red]Unknown preset: {preset_name}[/red]")
        print_presets()
        return None

    preset = PRESETS[preset_name]

    if preset.get("dangerous") and not dangerous_confirmed:
        console.print(Panel(
            f"[bold red]⚠️  WARNING: {preset['name']} is DANGEROUS![/bold red]\n\n"
            f"{preset['description']}\n\n"
            f"This opens and abandons transactions far faster than most backends expire them:\n"
            f"  • Exhausted transaction slots\n"
            f"  • Lock pile-ups on the seeded account\n"
            f"  • Memory growth on the server\n\n"
            f"[yellow]Only use on backends you own or have permission to test![/yellow]",
            title="⚠️ Dangerous Preset",
            border_style="red"
        ))
        if not Confirm.ask("Do you want to proceed?"):
            console.print("[dim]Cancelled.[/dim]")
            return None

    console.print(Panel(
        f"[bold]{preset['name']}[/bold]\n\n{preset['description']}",
        title=f"Running Preset: {preset_name}",
        border_style="blue"
    ))

    return await run(preset_config(preset_name, url), output_path=output_path)


def main():
    if len(sys.argv) < 2 or sys.argv[1] in ["--help", "-h", "help", "--list"]:
        console.print("[bold]Usage:[/bold] python run_presets.py <URL> [PRESET] [--i-know-what-im-doing] [--output FILE]")
        print_presets()
        return

    if len(sys.argv) == 2:
        console.print("[red]Please provide both URL and preset name[/red]")
        print_presets()
        return

    url = sys.argv[1]
    preset = sys.argv[2]
    dangerous_confirmed = "--i-know-what-im-doing" in sys.argv

    output_path = None
    for i, arg in enumerate(sys.argv):
        if arg in ("--output", "-o") and i + 1 < len(sys.argv):
            output_path = sys.argv[i + 1]

    asyncio.run(run_preset(url, preset, dangerous_confirmed, output_path))


if __name__ == "__main__":
    main()
