"""HTML-to-PDF rendering.

Use get_renderer() to get the default renderer, a headless Chromium driven
through its command line.
"""

from printstation.rendering.base import PageLayout, RenderError, RenderService


def get_renderer(binary: str | None = None) -> RenderService:
    """Factory function for the default renderer.

    Args:
        binary: Optional path to a Chromium/Chrome executable.

    Returns:
        RenderService: Renderer instance.
    """
    from printstation.rendering.chromium import ChromiumRenderer

    return ChromiumRenderer(binary)


__all__ = [
    "PageLayout",
    "RenderError",
    "RenderService",
    "get_renderer",
]
