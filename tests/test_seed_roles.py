"""
Tests for the role seeding script.

Run: pytest tests/test_seed_roles.py -v
"""

from unittest.mock import MagicMock

from authgate.config.access_config import ROLE_DESCRIPTIONS
from authgate.scripts.seed_roles import seed_roles


def test_inserts_missing_roles():
    supabase = MagicMock()
    supabase.table.return_value.select.return_value.eq.return_value.execute.return_value = MagicMock(data=[])

    assert seed_roles(supabase) == 3

    inserted = [c.args[0] for c in supabase.table.return_value.insert.call_args_list]
    assert inserted == [{"name": name, "description": ROLE_DESCRIPTIONS[name]} for name in ("admin", "manager", "user")]
    supabase.table.return_value.update.assert_not_called()


def test_existing_roles_are_updated():
    supabase = MagicMock()
    supabase.table.return_value.select.return_value.eq.return_value.execute.return_value = MagicMock(data=[{"id": "r"}])

    assert seed_roles(supabase) == 3

    supabase.table.return_value.insert.assert_not_called()
    assert supabase.table.return_value.update.call_count == 3


def test_failures_are_logged_and_skipped(caplog):
    supabase = MagicMock()
    supabase.table.side_effect = RuntimeError("permission denied")

    assert seed_roles(supabase) == 0
    assert "Error processing role admin" in caplog.text
