"""Abstract HTML-to-PDF render interface."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


class RenderError(Exception):
    """Error while rendering a document."""

    pass


@dataclass(frozen=True)
class PageLayout:
    """Render and print hints for one job.

    Attributes:
        page_format: Named page size ("A4", "Letter") or thermal width ("80mm").
        width_mm: Explicit page width, set for thermal paper.
        height_mm: Explicit page height; None on thermal paper means
            "content height plus height_padding_mm".
        margin_mm: Uniform page margin.
        height_padding_mm: Extra space added below measured content.
        thermal: Narrow receipt paper, printed without scaling.
    """

    page_format: str = "A4"
    width_mm: float | None = None
    height_mm: float | None = None
    margin_mm: float = 10.0
    height_padding_mm: float = 0.0
    thermal: bool = False

    @property
    def fit_to_page(self) -> bool:
        return not self.thermal


@runtime_checkable
class RenderService(Protocol):
    """Protocol for HTML-to-PDF renderers."""

    @property
    def is_available(self) -> bool:
        """Whether the renderer can run on this machine."""
        ...

    def render(self, html: str, layout: PageLayout) -> bytes:
        """Render HTML into PDF bytes.

        Args:
            html: Document HTML.
            layout: Page layout hints.

        Returns:
            bytes: PDF document.

        Raises:
            RenderError: If rendering fails.
        """
        ...
