"""
stacktrace.py - Text for the stack-detail page.
"""


def format_stack_with_numbers(stack: list[str]) -> str:
    """One numbered line per frame, root first."""
    return "\n".join(f"{i}. {name}" for i, name in enumerate(stack, 1))


def stack_detail_lines(stack: list[str], count: int, total: int) -> list[str]:
    """Lines shown when a frame is selected: share of total, then the stack."""
    pct = 100.0 * count / total if total > 0 else 0.0
    lines = [f"Selected stacktrace count: {count:,} ({pct:.2f}% of total)",
             "",
             "Full Stack Trace:"]
    lines.extend(format_stack_with_numbers(stack).splitlines())
    if lines[-1] != "Full Stack Trace:":
        lines[-1] += "  ← SELECTED"
    return lines
