"""
Rich display components — banners, tables, panels.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.align import Align
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from cli.console import console


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  BANNER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

BANNER = r"""
  ___                              ___
 | _ ) __ _ _ _  _ _  ___ _ _     / __|___ _ _
 | _ \/ _` | ' \| ' \/ -_) '_|   | (_ / -_) ' \
 |___/\__,_|_||_|_||_\___|_|      \___\___|_||_|
"""


def show_banner() -> None:
    """Display the startup banner."""
    panel = Panel(
        Align.center(Text(BANNER, style="bold cyan")),
        border_style="bright_blue",
        padding=(0, 2),
    )
    console.print(panel)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CONFIG / KEY-VALUE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_config_table(config: Dict[str, Any], title: str = "⚙️  Configuration") -> None:
    """Display settings (or any mapping) as a rich table."""
    table = Table(
        title=title,
        box=box.ROUNDED,
        border_style="bright_blue",
        show_header=True,
        header_style="bold white on blue",
        padding=(0, 1),
    )
    table.add_column("Setting", style="stat_key", min_width=20)
    table.add_column("Value", style="stat_val", min_width=30)

    for key, value in config.items():
        if isinstance(value, bool):
            val_str = "✅ Yes" if value else "❌ No"
            style = "success" if value else "muted"
        elif isinstance(value, (list, tuple)):
            val_str = " → ".join(str(v) for v in value)
            style = "template"
        elif isinstance(value, (int, float)):
            val_str = str(value)
            style = "highlight"
        else:
            val_str = str(value)
            style = "stat_val"

        table.add_row(key, Text(val_str, style=style))

    console.print(table)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  COMPLIANCE / RIGHTS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_findings(title: str, warnings: List[str], notes: List[str]) -> None:
    """Warnings and notes as a tree inside a coloured panel."""
    tree = Tree(f"[title]{title}[/]")
    if warnings:
        wb = tree.add("[warning]Warnings[/]")
        for w in warnings:
            wb.add(Text(w, style="warning"))
    if notes:
        nb = tree.add("[info]Notes[/]")
        for n in notes:
            nb.add(Text(n, style="muted"))
    if not warnings and not notes:
        tree.add("[success]✅ No findings[/]")

    console.print(Panel(tree, border_style="yellow" if warnings else "green"))
    console.print()


def show_banner_result(result: Dict[str, Any]) -> None:
    table = Table(title="🖼️  Banner", box=box.DOUBLE_EDGE, border_style="bright_green")
    table.add_column("Field", style="stat_key")
    table.add_column("Value", style="stat_val")

    table.add_row("Output", result["path"])
    table.add_row("Title", Text(result["title"], style="title"))
    for slot, hex_value in (result.get("colors") or {}).items():
        table.add_row(f"Colour · {slot}", Text(f"■ {hex_value}", style=hex_value))

    console.print(table)
    console.print()

    comp = result["compliance"]
    show_findings("Compliance", comp["warnings"], comp["notes"])
    if result.get("rights"):
        show_findings("Asset rights", result["rights"]["warnings"], result["rights"]["notes"])


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  A/B
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_candidates(session: Dict[str, Any]) -> None:
    table = Table(
        title=f"🎯 A/B session {session['sessionId']}",
        box=box.ROUNDED,
        border_style="cyan",
    )
    table.add_column("#", style="muted", width=3)
    table.add_column("Choice id", style="highlight")
    table.add_column("Template", style="template")
    table.add_column("Path", style="muted")

    for i, c in enumerate(session["candidates"], 1):
        table.add_row(str(i), c["id"], c["template"], c["path"])

    console.print(table)
    console.print()


def show_arm_stats(stats: Dict[str, Any], title: str = "📊 Template statistics") -> None:
    table = Table(title=title, box=box.SIMPLE_HEAVY, border_style="bright_blue")
    table.add_column("Template", style="template")
    table.add_column("Plays", justify="right", style="stat_val")
    table.add_column("Wins", justify="right", style="stat_val")
    table.add_column("Rate", justify="right")

    for name, arm in stats.items():
        style = "score" if arm.rate >= 0.5 else "score_bad"
        table.add_row(name, f"{arm.plays:.2f}", f"{arm.wins:.2f}", Text(f"{arm.rate:.3f}", style=style))

    console.print(table)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  TERMS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_term_suggestions(suggestions: Dict[str, List[Dict[str, Any]]]) -> None:
    table = Table(title="📚 Term suggestions", box=box.ROUNDED, border_style="cyan")
    table.add_column("Kind", style="stat_key")
    table.add_column("Term", style="title")
    table.add_column("Count", justify="right", style="stat_val")
    table.add_column("Removed", justify="right")

    for row in suggestions.get("keep", []):
        table.add_row("keep", row["token"], str(row["count"]), f"{row['removed_rate']:.0%}")
    for row in suggestions.get("drop", []):
        table.add_row("drop", row["token"], str(row["count"]), f"{row['removed_rate']:.0%}")
    for row in suggestions.get("replace", []):
        table.add_row("replace", f"{row['source']} → {row['target']}", str(row["count"]), "")

    if not table.row_count:
        console.print("[muted]No suggestions yet — generate more banners first[/]")
    else:
        console.print(table)
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  GOODBYE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def show_error(message: str, title: str = "Error") -> None:
    console.print(Panel(Text(message, style="error"), border_style="red", title=title))


def show_goodbye(output_path: Optional[str] = None) -> None:
    """Show exit message."""
    body = "✅ All done!" + (f"\nOutput: {output_path}" if output_path else "")
    panel = Panel(
        Align.center(Text(body, style="success")),
        border_style="green",
        title="Complete",
    )
    console.print(panel)
