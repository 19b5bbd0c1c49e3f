"""Unit tests for the pydantic record models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from siteprofile.models.analysis import BusinessAnalysis, DigitalMaturity, clamp_score
from siteprofile.models.content import ContactInfo, ScrapedContent, TechnicalInfo
from siteprofile.models.options import PipelineOptions, ScrapeOptions
from siteprofile.models.report import AnalysisReport


class TestScrapedContent:
    def test_failed_record(self) -> None:
        content = ScrapedContent.failed("https://a.nl", "boom", load_time_ms=1_500)
        assert content.ok is False
        assert content.error == "boom"
        assert content.technical_info.load_time_ms == 1_500
        assert content.technical_info.status_code == 0

    def test_errored_record_must_be_empty(self) -> None:
        with pytest.raises(ValidationError):
            ScrapedContent(url="https://a.nl", error="boom", title="Should not be here")
        with pytest.raises(ValidationError):
            ScrapedContent(
                url="https://a.nl", error="boom", contact_info=ContactInfo(emails=["a@b.nl"])
            )
        with pytest.raises(ValidationError):
            ScrapedContent(
                url="https://a.nl", error="boom", technical_info=TechnicalInfo(status_code=500)
            )

    def test_empty_error_string_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScrapedContent(url="https://a.nl", error="")

    def test_camel_case_serialisation(self, sample_content: ScrapedContent) -> None:
        data = sample_content.model_dump(by_alias=True)
        assert "contactInfo" in data
        assert "loadTimeMs" in data["technicalInfo"]
        assert data["technicalInfo"]["hasSsl"] is True

    def test_records_are_frozen(self, sample_content: ScrapedContent) -> None:
        with pytest.raises(ValidationError):
            sample_content.title = "changed"


class TestBusinessAnalysis:
    def test_confidence_clamped_on_construction(self) -> None:
        assert BusinessAnalysis(url="u", confidence_score=250).confidence_score == 100
        assert BusinessAnalysis(url="u", confidence_score="-3").confidence_score == 0

    def test_nested_scores_clamped(self) -> None:
        assert DigitalMaturity(score=101).score == 100

    def test_invalid_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DigitalMaturity(level="expert")

    def test_clamp_score_custom_bounds(self) -> None:
        assert clamp_score(7, low=1, high=5) == 5
        assert clamp_score("x", low=1, high=5) == 1


class TestOptions:
    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScrapeOptions(timeout=5)

    @pytest.mark.parametrize("value", [0, 11])
    def test_max_retries_bounds(self, value: int) -> None:
        with pytest.raises(ValidationError):
            ScrapeOptions(max_retries=value)

    def test_cache_options_exclude_force(self) -> None:
        options = PipelineOptions(force_reanalyze=True)
        assert "force_reanalyze" not in options.cache_options()
        assert options.cache_options() == PipelineOptions().cache_options()


class TestAnalysisReport:
    def test_degraded_when_extraction_failed(self) -> None:
        failed = ScrapedContent.failed("https://a.nl", "boom")
        report = AnalysisReport(
            url="https://a.nl", content=failed, analysis=BusinessAnalysis(url="https://a.nl")
        )
        assert report.degraded is True

    def test_not_degraded(self, sample_content: ScrapedContent) -> None:
        report = AnalysisReport(
            url=sample_content.url,
            content=sample_content,
            analysis=BusinessAnalysis(url=sample_content.url),
        )
        assert report.degraded is False
