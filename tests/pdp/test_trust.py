"""Unit tests for the trust gate allow-list classifier."""

from __future__ import annotations

from typing import Any

import pytest

from interlock.constants import DEFAULT_TRUSTED_ORIGINS
from interlock.pdp.trust import TrustDecision, TrustGate


@pytest.fixture
def gate() -> TrustGate:
    """Gate with the official extension origins."""
    return TrustGate(DEFAULT_TRUSTED_ORIGINS)


class TestSubstringMatching:
    """Default mode: an entry anywhere in the reference trusts it."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://gandi-main.ccw.site/ext.js",
            "https://official-extensions.ccw.site/a/b.js",
            "http://cdn.example.com/?from=gandi-main.ccw.site",
        ],
    )
    def test_official_origins_trusted(self, gate: TrustGate, url: str) -> None:
        assert gate.evaluate(url) is TrustDecision.TRUSTED

    def test_unknown_origin_needs_confirmation(self, gate: TrustGate) -> None:
        assert gate.evaluate("https://evil.example.com/x.js") is TrustDecision.NEEDS_CONFIRMATION

    def test_matching_is_case_sensitive(self, gate: TrustGate) -> None:
        assert gate.evaluate("https://GANDI-MAIN.CCW.SITE/ext.js") is TrustDecision.NEEDS_CONFIRMATION

    def test_matching_origin_reports_first_entry(self, gate: TrustGate) -> None:
        # Arrange
        url = "https://official-extensions.ccw.site/x.js"

        # Act
        origin = gate.matching_origin(url)

        # Assert
        assert origin == "official-extensions.ccw.site"


class TestPrefixMatching:
    """Stricter mode: the reference must start with an entry."""

    def test_prefix_trusted(self) -> None:
        # Arrange
        gate = TrustGate(["https://gandi-main.ccw.site/"], match="prefix")

        # Act / Assert
        assert gate.evaluate("https://gandi-main.ccw.site/ext.js") is TrustDecision.TRUSTED

    def test_embedded_origin_not_trusted(self) -> None:
        """An allow-listed origin in the query string does not count."""
        # Arrange
        gate = TrustGate(["https://gandi-main.ccw.site/"], match="prefix")

        # Act
        decision = gate.evaluate("https://evil.example.com/?https://gandi-main.ccw.site/")

        # Assert
        assert decision is TrustDecision.NEEDS_CONFIRMATION


class TestEdgeCases:
    @pytest.mark.parametrize("ref", [None, 42, b"gandi-main.ccw.site", ["gandi-main.ccw.site"]])
    def test_non_string_reference_never_trusted(self, gate: TrustGate, ref: Any) -> None:
        assert gate.evaluate(ref) is TrustDecision.NEEDS_CONFIRMATION

    def test_empty_reference_needs_confirmation(self, gate: TrustGate) -> None:
        assert gate.evaluate("") is TrustDecision.NEEDS_CONFIRMATION

    def test_empty_origin_rejected(self) -> None:
        """An empty entry would trust everything in substring mode."""
        with pytest.raises(ValueError, match="non-empty string"):
            TrustGate(["gandi-main.ccw.site", ""])

    def test_unknown_match_mode_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown match mode"):
            TrustGate(["a"], match="regex")  # type: ignore[arg-type]

    def test_empty_allow_list_trusts_nothing(self) -> None:
        assert TrustGate([]).evaluate("https://gandi-main.ccw.site/") is TrustDecision.NEEDS_CONFIRMATION
