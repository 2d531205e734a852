"""
events.py - Outbound notifications from the flame-graph view to its host.

The host implements FlameEvents; the view never reaches into a global
dispatcher.
"""
from typing import Optional, Protocol

FLAMEGRAPH_PAGE = "flamegraph"
STACKTRACE_PAGE = "stacktrace"
FORM_PAGE = "flamegraph_form"
HEATMAP_PAGE = "heatmap"


class FlameEvents(Protocol):
    def on_select(self, stack: list[str], count: int) -> None:
        """A frame was activated: root-first labels (root excluded) and count."""

    def switch_page(self, target: str) -> None:
        """The view asks the host to show another page."""


def resolve_back_target(source_page: str) -> Optional[str]:
    """
    Page to return to on Escape, given the page that opened the view.

    Coming back from a stack-detail page lands on the flame graph itself;
    the heatmap gets its own page back; anything else returns to the
    flame-graph parameters form. An empty source means there is nowhere
    to go.
    """
    if source_page.endswith(STACKTRACE_PAGE):
        return FLAMEGRAPH_PAGE
    if source_page == HEATMAP_PAGE:
        return HEATMAP_PAGE
    if source_page:
        return FORM_PAGE
    return None
