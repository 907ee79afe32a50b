"""
Tests for the non-interactive command line.
"""

from datetime import datetime, timedelta

import pytest
from typer.testing import CliRunner

from sidekick.chat.models import Conversation, Message
from sidekick.cli.app import cli
from sidekick.config import Config
from sidekick.storage.store import ConversationStore

runner = CliRunner()


@pytest.fixture
def cli_store(temp_dir, monkeypatch) -> ConversationStore:
    """Point the default store at a temporary directory with two conversations."""
    monkeypatch.setattr(Config, "DATA_DIR", temp_dir)
    store = ConversationStore()
    now = datetime.now()
    store.save_conversations([
        Conversation(id="conv_meet", title="Boomerang meetings", timestamp=now - timedelta(hours=1),
                     messages=[Message(role="user", content="How do meetings work?")]),
        Conversation(id="conv_train", title="Training plan", timestamp=now, archived=True,
                     messages=[Message(role="user", content="Which course first?")]),
    ])
    store.save_active_id("conv_meet")
    return store


class TestList:
    def test_lists_visible_conversations(self, cli_store):
        result = runner.invoke(cli, ["list"])

        assert result.exit_code == 0
        assert "conv_meet" in result.output
        assert "conv_train" not in result.output

    def test_archived_flag(self, cli_store):
        result = runner.invoke(cli, ["list", "--archived"])

        assert "conv_train" in result.output
        assert "conv_meet" not in result.output

    def test_query_without_matches(self, cli_store):
        result = runner.invoke(cli, ["list", "-q", "nothing like this"])

        assert result.exit_code == 0
        assert "No conversations found" in result.output


class TestExport:
    def test_writes_transcript(self, cli_store, temp_dir):
        out = temp_dir / "out.txt"
        result = runner.invoke(cli, ["export", "conv_meet", "--out", str(out)])

        assert result.exit_code == 0
        assert out.read_text(encoding="utf-8") == "[] You: How do meetings work?"

    def test_directory_target_uses_generated_name(self, cli_store, temp_dir):
        result = runner.invoke(cli, ["export", "conv_meet", "-o", str(temp_dir)])

        assert result.exit_code == 0
        assert (temp_dir / "boomerang-chat-Boomerang-meetings.txt").exists()

    def test_unknown_conversation(self, cli_store):
        result = runner.invoke(cli, ["export", "conv_nope"])
        assert result.exit_code == 1

    def test_unwritable_target_exits_cleanly(self, cli_store, temp_dir):
        """Test a write failure exits with code 1 instead of a traceback."""
        out = temp_dir / "missing" / "out.txt"
        result = runner.invoke(cli, ["export", "conv_meet", "--out", str(out)])

        assert result.exit_code == 1
        assert not isinstance(result.exception, OSError)
        assert not out.exists()


class TestDelete:
    def test_delete_with_confirmation(self, cli_store):
        """Test deleting the active conversation also clears the active id."""
        result = runner.invoke(cli, ["delete", "conv_meet"], input="y\n")

        assert result.exit_code == 0
        assert [c.id for c in cli_store.load_conversations()] == ["conv_train"]
        assert cli_store.load_active_id() is None

    def test_declined_confirmation_keeps_everything(self, cli_store):
        result = runner.invoke(cli, ["delete", "conv_meet", "conv_train"], input="n\n")

        assert result.exit_code != 0
        assert len(cli_store.load_conversations()) == 2

    def test_yes_flag(self, cli_store):
        result = runner.invoke(cli, ["delete", "-y", "conv_meet", "conv_train", "conv_missing"])

        assert result.exit_code == 0
        assert "2 conversation(s) deleted" in result.output
        assert cli_store.load_conversations() == []
