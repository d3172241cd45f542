"""Tests for the /install command parser."""

import pytest

from skillmgr.skills.parser import ParseStatus, parse_command


class TestParseCommand:
    @pytest.mark.parametrize("text", ["/install foo", "/install   foo", "/INSTALL foo", "/Install foo  "])
    def test_matches_identifier(self, text: str):
        parsed = parse_command(text)
        assert parsed.status is ParseStatus.MATCH
        assert parsed.identifier == "foo"
        assert parsed.matched

    @pytest.mark.parametrize("text", ["/install", "/install   ", "/install\t"])
    def test_missing_target(self, text: str):
        parsed = parse_command(text)
        assert parsed.status is ParseStatus.MISSING_TARGET
        assert parsed.identifier is None
        assert not parsed.matched

    @pytest.mark.parametrize("text", ["hello", "", None, "/installfoo", "please /install foo", "/help"])
    def test_no_match(self, text):
        assert parse_command(text).status is ParseStatus.NO_MATCH

    def test_keeps_owner_prefixed_identifier(self):
        parsed = parse_command("/install acme/greeter")
        assert parsed.identifier == "acme/greeter"

    def test_custom_prefix(self):
        assert parse_command("/add foo", prefix="/add").identifier == "foo"
        assert parse_command("/install foo", prefix="/add").status is ParseStatus.NO_MATCH

    def test_prefix_with_regex_characters_is_literal(self):
        assert parse_command("/i.nstall foo", prefix="/i.nstall").identifier == "foo"
        assert parse_command("/iXnstall foo", prefix="/i.nstall").status is ParseStatus.NO_MATCH
