# AGPL-3.0 License

"""
Unit tests for the PR description allowlist parser.
"""

from branch_guard.algo.allowlist_parser import AllowlistEntry, get_allowed_files_for_rule, parse_allowlist


class TestAllowlistParser:
    """Tests for parse_allowlist."""

    def test_parses_entries_with_and_without_reason(self):
        body = (
            "Removing old migrations.\n\n"
            "<!-- branch-guard:allow\n"
            "migrations: db/001_init.sql (squashed into 010)\n"
            "migrations: db/002_users.sql\n"
            "-->\n"
        )

        assert parse_allowlist(body) == [
            AllowlistEntry("migrations", "db/001_init.sql", "squashed into 010"),
            AllowlistEntry("migrations", "db/002_users.sql", ""),
        ]

    def test_multiple_blocks_accumulate(self):
        body = (
            "<!-- branch-guard:allow\nrule-a: a.txt\n-->\n"
            "text in between\n"
            "<!-- branch-guard:allow\nrule-b: b.txt (gone)\n-->"
        )

        assert [e.file_path for e in parse_allowlist(body)] == ["a.txt", "b.txt"]

    def test_invalid_lines_ignored(self):
        body = "<!-- branch-guard:allow\nNot A Rule: x.txt\njust text\n\nok-rule: y.txt\n-->"

        assert parse_allowlist(body) == [AllowlistEntry("ok-rule", "y.txt", "")]

    def test_empty_body(self):
        assert parse_allowlist(None) == []
        assert parse_allowlist("") == []
        assert parse_allowlist("<!-- some other comment -->") == []

    def test_filter_by_rule(self):
        body = "<!-- branch-guard:allow\nrule-a: a.txt\nrule-b: b.txt\n-->"

        assert get_allowed_files_for_rule(body, "rule-b") == [AllowlistEntry("rule-b", "b.txt", "")]
