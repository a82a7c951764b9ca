"""
Display helpers for the eremos CLI.

Renders outcome descriptors, extraction summaries, and escape reports.
The engine never renders; everything here reads result models only.
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..state.schema import (
    EscapeReport,
    ExtractionCheck,
    ExtractionResult,
    OutcomeDescriptor,
    OutcomeType,
    RunRecord,
    TransitionResult,
)

console = Console()

THEME = {
    "primary": "steel_blue",
    "warning": "dark_goldenrod",
    "danger": "dark_red",
    "success": "green",
    "dim": "dim",
}


def hull_bar(hull: int, max_hull: int, width: int = 10) -> str:
    if max_hull <= 0:
        return "[" + " " * width + "]"
    filled = round(width * hull / max_hull)
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def section_state(section) -> tuple[str, str]:
    """State label and style for a section row."""
    if section.is_critical:
        return "critical", THEME["danger"]
    if section.is_damaged:
        return "damaged", THEME["warning"]
    return "ok", ""


def render_run_status(run: RunRecord) -> None:
    table = Table(title=f"Run {run.id} - tier {run.map_tier}", border_style=THEME["primary"])
    table.add_column("Section")
    table.add_column("Lane")
    table.add_column("Hull")
    table.add_column("State")
    for section in run.sections.values():
        state, style = section_state(section)
        table.add_row(
            section.name or section.key.value,
            section.lane.value,
            f"{hull_bar(section.hull, section.max_hull)} {section.hull}/{section.max_hull}",
            f"[{style}]{state}[/{style}]" if style else state,
        )
    console.print(table)
    console.print(
        f"[{THEME['dim']}]Detection {run.detection_level:.0f}%  "
        f"Cargo {len(run.collected_loot)}  "
        f"Wins {run.combats_won}[/{THEME['dim']}]"
    )


def render_outcome(descriptor: OutcomeDescriptor) -> None:
    if not descriptor.success:
        console.print(f"[{THEME['danger']}]{descriptor.error}[/{THEME['danger']}]")
        return

    if descriptor.outcome == OutcomeType.DEFEAT:
        console.print(Panel(
            descriptor.message,
            title=f"DEFEAT ({descriptor.failure_reason.value})",
            border_style=THEME["danger"],
        ))
        return

    lines = [descriptor.message]
    if descriptor.is_boss_reward and descriptor.boss_reward:
        reward = descriptor.boss_reward
        tag = "first victory" if descriptor.is_first_boss_victory else "repeat victory"
        lines.append(
            f"{reward.credits} credits, {reward.ai_cores} AI cores, "
            f"{reward.reputation} reputation ({tag})"
        )
    if descriptor.loot:
        for item in descriptor.loot.items:
            lines.append(f"  - {describe_item(item)}")
    if descriptor.pending_blueprint:
        lines.append(f"Blueprint: {descriptor.pending_blueprint.blueprint_id}")
    if descriptor.reputation:
        lines.append(f"Reputation +{descriptor.reputation.rep_earned}")
    console.print(Panel("\n".join(lines), title="VICTORY", border_style=THEME["success"]))


def render_transition(result: TransitionResult) -> None:
    if not result.success:
        console.print(f"[{THEME['danger']}]{result.error}[/{THEME['danger']}]")
        return
    console.print(f"[{THEME['dim']}]{result.message} -> {result.transition.value}[/{THEME['dim']}]")


def render_extraction_check(check: ExtractionCheck) -> None:
    if not check.success:
        console.print(f"[{THEME['danger']}]{check.error}[/{THEME['danger']}]")
    elif check.clearance_used:
        console.print("Clearance transmitted. Extraction corridor open.")
    elif check.already_cleared:
        console.print("Blockade already broken. Extraction corridor open.")
    elif check.blocked:
        console.print(
            f"[{THEME['warning']}]Blockade! {check.hostile_id} intercepts "
            f"(roll {check.roll:.1f}).[/{THEME['warning']}]"
        )
    else:
        console.print(f"Extraction clear (roll {check.roll:.1f}).")


def render_extraction(result: ExtractionResult) -> None:
    if not result.success:
        console.print(f"[{THEME['danger']}]{result.error}[/{THEME['danger']}]")
        return
    if result.summary is None:
        console.print(
            f"[{THEME['warning']}]Cargo exceeds capacity: keep {result.limit} "
            f"of {len(result.collected_loot)} items.[/{THEME['warning']}]"
        )
        return

    summary = result.summary
    table = Table(title="Extraction Complete", border_style=THEME["success"])
    table.add_column("Item")
    table.add_column("Value", justify="right")
    table.add_row("Cards", str(summary.cards_acquired))
    table.add_row("Blueprints", str(summary.blueprints_acquired))
    table.add_row("Credits", str(summary.credits_earned))
    table.add_row("AI cores", str(summary.ai_cores_earned))
    table.add_row("Hull", f"{summary.final_hull}/{summary.max_hull} ({summary.hull_percent}%)")
    table.add_row("Discarded", str(summary.items_discarded))
    if summary.drones_damaged:
        table.add_row("Drones damaged", ", ".join(summary.drones_damaged))
    console.print(table)


def render_escape(report: EscapeReport, show_hits: bool = True) -> None:
    if not report.success:
        console.print(f"[{THEME['danger']}]{report.error}[/{THEME['danger']}]")
        return
    style = THEME["danger"] if report.destroyed else THEME["warning"]
    console.print(
        f"[{style}]Escape cost {report.total_damage} hull"
        f"{' - ship lost' if report.destroyed else ''}.[/{style}]"
    )
    if show_hits:
        for hit in report.hits:
            console.print(
                f"  [{THEME['dim']}]{hit.section.value}: {hit.new_hull}/{hit.max_hull}[/{THEME['dim']}]"
            )


def describe_item(item) -> str:
    if item.type == "card":
        return f"{item.name} ({item.rarity.value})"
    if item.type == "salvage_item":
        return f"{item.name} - {item.credit_value} cr"
    if item.type == "ai_cores":
        return f"{item.amount} AI core(s)"
    if item.type == "token":
        return f"{item.amount}x {item.token_type} token"
    return f"Blueprint {item.blueprint_id}"
