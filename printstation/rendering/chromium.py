"""Headless Chromium renderer.

Renders HTML to PDF by running a Chromium/Chrome binary with
--print-to-pdf. Page size and margins are injected as an @page rule.

Thermal receipts have no fixed length: the page is first captured as a
screenshot at the paper width, the bottom of the content is found with
Pillow, and the PDF is then printed with that height plus padding.
"""

import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path

from PIL import Image, ImageOps

from printstation.rendering.base import PageLayout, RenderError

logger = logging.getLogger(__name__)

# Executables tried in order when no binary is given
CHROMIUM_CANDIDATES = (
    "chromium",
    "chromium-browser",
    "google-chrome",
    "google-chrome-stable",
    "chrome",
    "msedge",
)

# CSS reference pixels per inch
CSS_DPI = 96
MM_PER_INCH = 25.4

# Viewport height used when measuring thermal content
MEASURE_VIEWPORT_PX = 8000

DEFAULT_TIMEOUT = 30

_HEAD_RE = re.compile(r"<head[^>]*>", re.IGNORECASE)


def mm_to_px(mm: float) -> int:
    return round(mm / MM_PER_INCH * CSS_DPI)


def px_to_mm(px: int) -> float:
    return px * MM_PER_INCH / CSS_DPI


def find_chromium() -> str | None:
    """Locate a Chromium-compatible executable on PATH.

    Returns:
        str | None: Executable path or None.
    """
    for name in CHROMIUM_CANDIDATES:
        path = shutil.which(name)
        if path:
            return path
    return None


def page_css(layout: PageLayout, height_mm: float | None = None) -> str:
    """Build the @page rule for a layout.

    Args:
        layout: Page layout hints.
        height_mm: Page height for thermal layouts.

    Returns:
        str: CSS text.
    """
    if layout.width_mm is not None:
        height = height_mm if height_mm is not None else layout.height_mm
        size = f"{layout.width_mm:g}mm {height:.1f}mm" if height else f"{layout.width_mm:g}mm"
    else:
        size = layout.page_format

    css = f"@page {{ size: {size}; margin: {layout.margin_mm:g}mm; }}"
    if layout.thermal:
        css += " html, body { margin: 0; padding: 0; }"
    return css


def inject_css(html: str, css: str) -> str:
    """Insert a <style> element at the start of the document head."""
    style = f"<style>{css}</style>"
    match = _HEAD_RE.search(html)
    if match:
        return html[: match.end()] + style + html[match.end() :]
    return style + html


def content_bottom_px(image: Image.Image) -> int:
    """Find the lowest non-white row of a screenshot.

    Args:
        image: Page screenshot.

    Returns:
        int: Height in pixels up to the last row with content (0 if blank).
    """
    inverted = ImageOps.invert(image.convert("L"))
    bbox = inverted.getbbox()
    if not bbox:
        return 0
    return bbox[3]


class ChromiumRenderer:
    """Renders HTML to PDF with a headless Chromium binary."""

    def __init__(self, binary: str | None = None, timeout: int = DEFAULT_TIMEOUT):
        """Initialize the renderer.

        Args:
            binary: Chromium executable (None = search PATH).
            timeout: Seconds allowed per Chromium invocation.
        """
        self.binary = binary or find_chromium()
        self.timeout = timeout

    @property
    def is_available(self) -> bool:
        return self.binary is not None

    def _base_command(self) -> list[str]:
        if not self.binary:
            raise RenderError("Chromium not found - install chromium or google-chrome")
        return [
            self.binary,
            "--headless",
            "--disable-gpu",
            "--no-sandbox",
            "--hide-scrollbars",
            "--force-device-scale-factor=1",
        ]

    def _run(self, cmd: list[str]) -> None:
        logger.debug(f"Render command: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as err:
            raise RenderError(f"Render timed out after {self.timeout}s") from err
        except FileNotFoundError as err:
            raise RenderError(f"Chromium binary not found: {self.binary}") from err

        if result.returncode != 0:
            raise RenderError(f"Chromium failed ({result.returncode}): {result.stderr.strip()}")

    def measure_height_mm(self, html: str, layout: PageLayout, workdir: Path) -> float:
        """Measure the rendered content height at the layout's paper width.

        Args:
            html: Document HTML.
            layout: Thermal layout (width_mm must be set).
            workdir: Scratch directory.

        Returns:
            float: Content height in millimetres.
        """
        source = workdir / "measure.html"
        screenshot = workdir / "measure.png"
        source.write_text(inject_css(html, page_css(layout)), encoding="utf-8")

        cmd = self._base_command()
        cmd.extend(
            [
                f"--window-size={mm_to_px(layout.width_mm)},{MEASURE_VIEWPORT_PX}",
                f"--screenshot={screenshot}",
                source.as_uri(),
            ]
        )
        self._run(cmd)

        if not screenshot.exists():
            raise RenderError("Chromium produced no screenshot")

        with Image.open(screenshot) as image:
            bottom = content_bottom_px(image)

        logger.debug(f"Measured content height: {bottom}px")
        return px_to_mm(bottom)

    def render(self, html: str, layout: PageLayout) -> bytes:
        """Render HTML into PDF bytes.

        Args:
            html: Document HTML.
            layout: Page layout hints.

        Returns:
            bytes: PDF document.

        Raises:
            RenderError: If Chromium is missing, fails or times out.
        """
        with tempfile.TemporaryDirectory(prefix="printstation-") as tmp:
            workdir = Path(tmp)

            height_mm = layout.height_mm
            if layout.thermal and layout.width_mm is not None and height_mm is None:
                height_mm = self.measure_height_mm(html, layout, workdir)
                height_mm += layout.height_padding_mm

            source = workdir / "document.html"
            output = workdir / "document.pdf"
            source.write_text(inject_css(html, page_css(layout, height_mm)), encoding="utf-8")

            cmd = self._base_command()
            cmd.extend(
                [
                    "--no-pdf-header-footer",
                    f"--print-to-pdf={output}",
                    source.as_uri(),
                ]
            )
            self._run(cmd)

            if not output.exists() or output.stat().st_size == 0:
                raise RenderError("Chromium produced no PDF output")

            pdf_data = output.read_bytes()

        logger.info(f"Rendered {len(pdf_data)} bytes of PDF ({layout.page_format})")
        return pdf_data
