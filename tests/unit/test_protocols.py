"""
Unit tests for the shared data model and error taxonomy.
"""

from __future__ import annotations

import pytest
from conftest import make_content

from cleanread.errors import ErrorCode, ExtractionError, describe_input
from cleanread.protocols import (
    ContentKind,
    ExtractedContent,
    ExtractionMethod,
    ExtractionOptions,
    ExtractionProgress,
    ExtractionStage,
    SiteRule,
)


class TestExtractionOptions:
    """Options value object."""

    def test_defaults(self):
        options = ExtractionOptions()
        assert options.min_content_length == 500
        assert options.remove_recommendations is True
        assert options.aggressive_noise_removal is False
        assert options.cache_enabled is True
        assert options.cache_ttl == 3600.0
        assert options.max_concurrency == 5
        assert options.output_kind is ContentKind.STRUCTURED_DOCUMENT

    def test_with_updates_returns_a_copy(self):
        options = ExtractionOptions()
        updated = options.with_updates(min_content_length=10)
        assert updated.min_content_length == 10
        assert options.min_content_length == 500

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            ExtractionOptions().min_content_length = 1

    @pytest.mark.parametrize(
        "kwargs",
        [{"min_content_length": -1}, {"max_concurrency": 0}, {"cache_ttl": 0}],
    )
    def test_validation(self, kwargs):
        with pytest.raises(ValueError):
            ExtractionOptions(**kwargs)

    def test_containers_normalized(self):
        options = ExtractionOptions(preserve_classes=["a", "a"], custom_selectors=[".x"])
        assert options.preserve_classes == frozenset({"a"})
        assert options.custom_selectors == (".x",)

    def test_fingerprint_tracks_output_affecting_fields(self):
        base = ExtractionOptions()
        assert base.fingerprint() == ExtractionOptions(on_progress=print, cache_ttl=5).fingerprint()
        assert base.fingerprint() != ExtractionOptions(output_kind=ContentKind.PLAIN_TEXT).fingerprint()
        assert base.fingerprint() != ExtractionOptions(preserve_comments=True).fingerprint()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"custom_selectors": [".promo"]},
            {"preserve_classes": ["keep-me"]},
            {"site_rules": {"example.com": SiteRule(content_selector=".body")}},
            {"site_rules": {"example.com": SiteRule(remove_selectors=(".toc",))}},
        ],
    )
    def test_fingerprint_tracks_selectors_and_site_rules(self, kwargs):
        assert ExtractionOptions().fingerprint() != ExtractionOptions(**kwargs).fingerprint()

    def test_fingerprint_stable_for_equal_site_rules(self):
        first = ExtractionOptions(site_rules={"example.com": SiteRule(content_selector=".body")})
        second = ExtractionOptions(site_rules={"example.com": SiteRule(content_selector=".body")})
        assert first.fingerprint() == second.fingerprint()

    def test_site_rule_lookup_tolerates_www(self):
        rule = SiteRule(content_selector=".body")
        options = ExtractionOptions(site_rules={"example.com": rule})
        assert options.site_rule_for("WWW.example.com") is rule
        assert options.site_rule_for("other.com") is None
        assert options.site_rule_for("") is None


class TestResults:
    """Result dataclasses."""

    def test_progress_percent_clamped(self):
        assert ExtractionProgress(stage=ExtractionStage.FETCHING, percent=150).percent == 100
        assert ExtractionProgress(stage=ExtractionStage.FETCHING, percent=-5).percent == 0

    def test_content_round_trips_through_dict(self):
        content = make_content(title="T", body="# T\n\nBody", method=ExtractionMethod.LIVE_DOCUMENT)
        assert ExtractedContent.from_dict(content.to_dict()) == content

    def test_metadata_rejects_negative_counts(self):
        content = make_content()
        with pytest.raises(ValueError):
            type(content.metadata)(
                word_count=-1,
                reading_time_minutes=0,
                image_count=0,
                link_count=0,
                code_block_count=0,
                source_quality=content.metadata.source_quality,
                extracted_at=0,
                extraction_method=ExtractionMethod.STRUCTURAL,
            )


class TestExtractionError:
    """Error taxonomy."""

    def test_retryable_codes(self):
        assert ExtractionError(ErrorCode.TIMEOUT, "t").is_retryable is True
        assert ExtractionError(ErrorCode.FETCH_FAILED, "f").is_retryable is True
        assert ExtractionError(ErrorCode.NO_CONTENT, "n").is_retryable is False

    def test_to_dict(self):
        cause = ValueError("inner")
        error = ExtractionError(
            ErrorCode.FETCH_FAILED,
            "HTTP 404",
            input="https://example.com",
            stage=ExtractionStage.FETCHING,
            cause=cause,
            status_code=404,
        )
        assert error.to_dict() == {
            "code": "FETCH_FAILED",
            "message": "HTTP 404",
            "input": "https://example.com",
            "stage": "fetching",
            "cause": "ValueError: inner",
            "status_code": 404,
        }
        assert str(error) == "HTTP 404"

    def test_describe_input(self):
        assert describe_input("  a\n b ") == "a b"
        assert describe_input("x" * 200, limit=10) == "xxxxxxx..."
        assert describe_input(object()) == "<object>"
