"""Unit tests for SAML assertion construction.

Tests cover:
- Assertion ID format and uniqueness
- Timestamp relations and truncation
- XML structure and element order
- Parameter validation
"""

import re
from datetime import datetime, timedelta, timezone

import pytest
from lxml import etree

from cad_client.saml.assertion_builder import (
    AUTHN_CONTEXT_UNSPECIFIED,
    CONFIRMATION_METHOD_BEARER,
    NAMEID_FORMAT_UNSPECIFIED,
    SAML_NS,
    SAMLAssertionBuilder,
    format_saml_time,
    generate_assertion_id,
    generate_saml_timestamps,
)
from cad_client.utils.exceptions import ValidationError

NS = {"saml": SAML_NS}


class TestGenerateAssertionId:
    """Test assertion ID generation."""

    def test_format(self) -> None:
        """Test ID is underscore followed by 32 lowercase hex characters."""
        assertion_id = generate_assertion_id()

        assert re.fullmatch(r"_[0-9a-f]{32}", assertion_id)

    def test_uniqueness(self) -> None:
        """Test 1000 generated IDs are pairwise distinct."""
        ids = {generate_assertion_id() for _ in range(1000)}

        assert len(ids) == 1000


class TestTimestamps:
    """Test timestamp computation and formatting."""

    def test_relations(self) -> None:
        """Test not_before equals issue_instant and expiry is issue + lifetime."""
        now = datetime(2024, 3, 1, 8, 30, 15, 987654, tzinfo=timezone.utc)

        timestamps = generate_saml_timestamps(timedelta(minutes=10), now=now)

        assert timestamps["issue_instant"] == datetime(2024, 3, 1, 8, 30, 15, tzinfo=timezone.utc)
        assert timestamps["not_before"] == timestamps["issue_instant"]
        assert timestamps["not_on_or_after"] - timestamps["issue_instant"] == timedelta(minutes=10)

    def test_format_saml_time_utc(self) -> None:
        """Test non-UTC datetimes are converted to UTC with Z suffix."""
        eastern = timezone(timedelta(hours=-5))
        instant = datetime(2024, 3, 1, 3, 0, 0, tzinfo=eastern)

        assert format_saml_time(instant) == "2024-03-01T08:00:00Z"


class TestSAMLAssertionBuilder:
    """Test SAMLAssertionBuilder.build()."""

    def test_build_populates_metadata(self, fake_clock) -> None:
        """Test returned dataclass fields match the inputs and the clock."""
        builder = SAMLAssertionBuilder("provider.example.com", clock=fake_clock)

        assertion = builder.build("customer-42")

        assert assertion.issuer == "provider.example.com"
        assert assertion.subject == "customer-42"
        assert assertion.audience == "provider.example.com"
        assert assertion.issue_instant == fake_clock.now
        assert assertion.not_before == assertion.issue_instant
        assert assertion.not_on_or_after == fake_clock.now + timedelta(minutes=10)
        assert assertion.session_index == assertion.assertion_id
        assert assertion.authn_context_class == AUTHN_CONTEXT_UNSPECIFIED
        assert not assertion.is_signed

    def test_build_xml_structure(self, fake_clock) -> None:
        """Test element order, attributes and text content of the XML."""
        builder = SAMLAssertionBuilder("provider.example.com", clock=fake_clock)

        assertion = builder.build("customer-42")
        root = etree.fromstring(assertion.xml_content.encode("utf-8"))

        assert root.tag == f"{{{SAML_NS}}}Assertion"
        assert root.prefix == "saml"
        assert root.get("ID") == assertion.assertion_id
        assert root.get("Version") == "2.0"
        assert root.get("IssueInstant") == "2024-01-15T12:00:00Z"

        children = [etree.QName(child).localname for child in root]
        assert children == ["Issuer", "Subject", "Conditions", "AuthnStatement"]

        name_id = root.find("saml:Subject/saml:NameID", NS)
        assert name_id.text == "customer-42"
        assert name_id.get("Format") == NAMEID_FORMAT_UNSPECIFIED

        confirmation = root.find("saml:Subject/saml:SubjectConfirmation", NS)
        assert confirmation.get("Method") == CONFIRMATION_METHOD_BEARER

        conditions = root.find("saml:Conditions", NS)
        assert conditions.get("NotBefore") == "2024-01-15T12:00:00Z"
        assert conditions.get("NotOnOrAfter") == "2024-01-15T12:10:00Z"
        assert root.findtext("saml:Conditions/saml:AudienceRestriction/saml:Audience", namespaces=NS) == (
            "provider.example.com"
        )

        statement = root.find("saml:AuthnStatement", NS)
        assert statement.get("SessionIndex") == assertion.assertion_id
        assert statement.get("AuthnInstant") == "2024-01-15T12:00:00Z"

    def test_xml_is_exclusive_canonical(self, builder) -> None:
        """Test stored XML is already in exclusive canonical form."""
        assertion = builder.build("customer-42")
        root = etree.fromstring(assertion.xml_content.encode("utf-8"))

        canonical = etree.tostring(root, method="c14n", exclusive=True, with_comments=False)

        assert canonical.decode("utf-8") == assertion.xml_content

    def test_custom_audience_and_lifetime(self, fake_clock) -> None:
        """Test audience override and per-call lifetime override."""
        builder = SAMLAssertionBuilder(
            "provider.example.com", audience="https://oauth.example.com", clock=fake_clock
        )

        assertion = builder.build("customer-42", lifetime=timedelta(minutes=3))

        assert assertion.audience == "https://oauth.example.com"
        assert assertion.not_on_or_after - assertion.issue_instant == timedelta(minutes=3)

    def test_subject_is_escaped(self, builder) -> None:
        """Test markup characters in the subject survive as text."""
        assertion = builder.build("a<b&c")
        root = etree.fromstring(assertion.xml_content.encode("utf-8"))

        assert root.findtext("saml:Subject/saml:NameID", namespaces=NS) == "a<b&c"

    @pytest.mark.parametrize("subject", ["", None])
    def test_empty_subject_rejected(self, builder, subject) -> None:
        """Test empty customer identifier raises ValidationError."""
        with pytest.raises(ValidationError, match="Customer identifier"):
            builder.build(subject)

    def test_empty_issuer_rejected(self) -> None:
        """Test empty issuer raises ValidationError at build time."""
        with pytest.raises(ValidationError, match="Issuer"):
            SAMLAssertionBuilder("").build("customer-42")

    def test_non_positive_lifetime_rejected(self, builder) -> None:
        """Test zero lifetime raises ValidationError."""
        with pytest.raises(ValidationError, match="lifetime"):
            builder.build("customer-42", lifetime=timedelta(0))
