"""Tests for printer selection and page layout rules."""

import pytest

from printstation.routing import (
    DEFAULT_PAGE_FORMAT,
    is_thermal_job,
    job_document_type,
    page_layout_for,
    select_printer,
)


class TestSelectPrinter:
    """Tests for document type -> printer mapping."""

    def test_exact_match(self):
        """Mapped types use their printer."""
        assert select_printer("factura", {"factura": "HP1", "default": "HP2"}) == "HP1"

    def test_falls_back_to_default(self):
        """Unmapped types use the default mapping."""
        assert select_printer("unknown", {"default": "HP2"}) == "HP2"

    def test_no_mapping_returns_none(self):
        """No match and no default gives None."""
        assert select_printer("unknown", {}) is None
        assert select_printer("unknown", None) is None

    def test_empty_mapping_value_falls_back(self):
        """An empty printer name counts as unmapped."""
        assert select_printer("factura", {"factura": "", "default": "HP2"}) == "HP2"

    def test_case_sensitive(self):
        """Types are compared exactly as given."""
        assert select_printer("Factura", {"factura": "HP1", "default": "HP2"}) == "HP2"

    def test_missing_type_uses_default(self):
        """Jobs without a type go to the default printer."""
        assert select_printer(None, {"default": "HP2"}) == "HP2"


class TestJobDocumentType:
    """Tests for reading the document type of a job."""

    def test_type_field(self):
        assert job_document_type({"type": "factura"}) == "factura"

    def test_document_type_field(self):
        """Older servers send 'document_type'."""
        assert job_document_type({"document_type": "boleta"}) == "boleta"

    def test_missing(self):
        assert job_document_type({"id": "1"}) is None


class TestThermalDetection:
    """Tests for receipt printer classification."""

    @pytest.mark.parametrize(
        "job",
        [
            {"type": "cocina"},
            {"type": "ticket"},
            {"type": "bar"},
            {"document_type": "kitchen"},
            {"format": "80mm"},
            {"type": "factura", "format": "58mm"},
        ],
    )
    def test_thermal_jobs(self, job):
        assert is_thermal_job(job) is True

    @pytest.mark.parametrize(
        "job",
        [
            {"type": "factura", "format": "A4"},
            {"type": "guia"},
            {"format": "Letter"},
            {},
        ],
    )
    def test_standard_jobs(self, job):
        assert is_thermal_job(job) is False


class TestPageLayout:
    """Tests for render/print hints."""

    def test_standard_layout(self):
        """Standard jobs keep their format, have margins and fit to page."""
        layout = page_layout_for({"type": "factura", "format": "A4"})

        assert layout.thermal is False
        assert layout.page_format == "A4"
        assert layout.margin_mm > 0
        assert layout.fit_to_page is True
        assert layout.width_mm is None

    def test_standard_layout_defaults_to_a4(self):
        """Jobs without a format print on A4."""
        assert page_layout_for({"type": "factura"}).page_format == DEFAULT_PAGE_FORMAT

    def test_thermal_layout_from_type(self):
        """Thermal types get 80mm paper, no margins, content height and no scaling."""
        layout = page_layout_for({"type": "cocina"})

        assert layout.thermal is True
        assert layout.width_mm == 80.0
        assert layout.height_mm is None
        assert layout.height_padding_mm > 0
        assert layout.margin_mm == 0
        assert layout.fit_to_page is False

    def test_thermal_layout_keeps_paper_width(self):
        """58mm jobs keep their narrower width."""
        layout = page_layout_for({"type": "ticket", "format": "58mm"})
        assert layout.width_mm == 58.0
        assert layout.page_format == "58mm"
