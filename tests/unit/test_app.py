"""Unit tests for the command-line entrypoint and logging setup."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx
import structlog
import structlog.testing

from siteprofile.app import EXIT_ERROR, EXIT_OK, EXIT_REJECTED, _parse_args, main, setup_logging
from siteprofile.config import Settings
from siteprofile.errors import ErrorCode, SiteProfileError
from siteprofile.models.analysis import BusinessAnalysis
from siteprofile.models.report import AnalysisReport

if TYPE_CHECKING:
    from collections.abc import Iterator

    from siteprofile.models.content import ScrapedContent

COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


def _run_main(settings: Settings, argv: list[str]) -> int:
    with (
        patch("siteprofile.app.Settings", return_value=settings),
        patch("siteprofile.app.setup_logging"),
        structlog.testing.capture_logs(),
    ):
        return main(argv)


class TestSetupLogging:
    def test_json_renderer(self) -> None:
        setup_logging(Settings(logging={"format": "json"}))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_text_renderer(self) -> None:
        setup_logging(Settings(logging={"format": "text", "level": "DEBUG"}))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)


class TestParseArgs:
    def test_defaults(self) -> None:
        args = _parse_args(["https://www.demolen.nl"])
        assert args.url == "https://www.demolen.nl"
        assert args.force is False
        assert args.language == "nl"
        assert args.caller is None

    def test_flags(self) -> None:
        args = _parse_args(
            ["https://www.demolen.nl", "--force", "--language", "en", "--caller", "cli"]
        )
        assert args.force is True
        assert args.language == "en"
        assert args.caller == "cli"

    def test_unknown_language_exits(self) -> None:
        with pytest.raises(SystemExit):
            _parse_args(["https://www.demolen.nl", "--language", "de"])

    def test_diagnose_needs_no_url(self) -> None:
        args = _parse_args(["--diagnose"])
        assert args.diagnose is True
        assert args.url is None

    def test_url_required_without_diagnose(self) -> None:
        with pytest.raises(SystemExit):
            _parse_args([])


class TestMain:
    def test_prints_report(
        self,
        settings: Settings,
        sample_content: ScrapedContent,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        report = AnalysisReport(
            url=sample_content.url,
            content=sample_content,
            analysis=BusinessAnalysis(url=sample_content.url, business_type="Bakery"),
        )
        pipeline = AsyncMock(return_value=report)

        with patch("siteprofile.app.analyze_website", pipeline):
            code = _run_main(settings, [sample_content.url, "--force", "--caller", "cli"])

        assert code == EXIT_OK
        printed = json.loads(capsys.readouterr().out)
        assert printed["analysis"]["businessType"] == "Bakery"
        assert printed["scrapeCached"] is False

        kwargs: dict[str, Any] = pipeline.await_args.kwargs
        assert kwargs["caller_id"] == "cli"
        assert kwargs["options"].force_reanalyze is True

    def test_rejected_url_exits_2(
        self, settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run_main(settings, ["http://127.0.0.1:8080/admin"])

        assert code == EXIT_REJECTED
        err = capsys.readouterr().err
        assert ErrorCode.VALIDATION_REJECTED in err

    def test_rate_limited_exits_2(self, settings: Settings) -> None:
        limited = SiteProfileError(
            code=ErrorCode.RATE_LIMITED,
            message="Rate limit exceeded",
            suggestion="Wait",
            recoverable=True,
        )
        with patch("siteprofile.app.analyze_website", AsyncMock(side_effect=limited)):
            code = _run_main(settings, ["https://www.demolen.nl"])

        assert code == EXIT_REJECTED

    def test_missing_api_key_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run_main(Settings(llm={"api_key": None}), ["https://www.demolen.nl"])

        assert code == EXIT_ERROR
        assert ErrorCode.INVALID_CONFIG in capsys.readouterr().err


class TestDiagnoseCommand:
    def test_reachable_llm_exits_0(
        self, settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        completion = {
            "id": "chatcmpl-diag",
            "object": "chat.completion",
            "created": 0,
            "model": "gpt-4o-mini",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": "ok"},
                    "finish_reason": "stop",
                }
            ],
        }
        with respx.mock:
            route = respx.post(COMPLETIONS_URL).mock(
                return_value=httpx.Response(200, json=completion)
            )
            code = _run_main(settings, ["--diagnose", "--caller", "cli"])

        assert code == EXIT_OK
        assert route.call_count == 1
        printed = json.loads(capsys.readouterr().out)
        assert printed["status"]["llm_reachable"] is True
        assert printed["remaining_analyses"] == settings.rate_limit.analyses_per_hour

    def test_unreachable_llm_exits_1(
        self, settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with respx.mock:
            respx.post(COMPLETIONS_URL).mock(return_value=httpx.Response(401, json={}))
            code = _run_main(settings, ["--diagnose"])

        assert code == EXIT_ERROR
        printed = json.loads(capsys.readouterr().out)
        assert printed["status"]["llm_reachable"] is False

    def test_missing_api_key_reports_static_checks(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run_main(Settings(llm={"api_key": None}), ["--diagnose"])

        assert code == EXIT_ERROR
        printed = json.loads(capsys.readouterr().out)
        assert printed["status"]["llm_configured"] is False
        assert printed["status"]["llm_reachable"] is None
