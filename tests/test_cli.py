import json

import pytest

from storeaudit.cli import build_parser, main


class TestParser:

    def test_commands(self):
        parser = build_parser()
        args = parser.parse_args(["recompute-statuses", "--dry-run"])
        assert args.command == "recompute-statuses" and args.dry_run

        args = parser.parse_args(["reset-store", "abc"])
        assert args.store_id == "abc"

    def test_reset_store_needs_id(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["reset-store"])

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
        assert "usage" in capsys.readouterr().out


class TestCommands:

    def test_reset_all_requires_confirmation(self):
        assert main(["reset-all"]) == 2

    def test_recompute_on_empty_database(self, capsys):
        assert main(["init-db"]) == 0
        capsys.readouterr()

        assert main(["recompute-statuses", "--dry-run"]) == 0
        assert json.loads(capsys.readouterr().out) == {}

    def test_reset_unknown_store(self):
        assert main(["init-db"]) == 0
        assert main(["reset-store", "missing"]) == 1
