"""
Tests for the soft-deletable CLI module.
"""

import json
from unittest.mock import patch

import click
import pytest
from click.testing import CliRunner
from sqlalchemy import Column, ForeignKey, Integer, String, create_engine, select
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from soft_deletable.cli import cli, load_models
from soft_deletable.soft_delete import BooleanSoftDeleteMixin, TimestampSoftDeleteMixin

Base = declarative_base()


class Article(Base, TimestampSoftDeleteMixin):
    """Article with revisions deleted along with it."""

    __tablename__ = "articles"

    id = Column(Integer, primary_key=True)
    title = Column(String(100))

    revisions = relationship("Revision", cascade="all, delete-orphan")


class Revision(Base, TimestampSoftDeleteMixin):
    """Revision of an article."""

    __tablename__ = "revisions"

    id = Column(Integer, primary_key=True)
    body = Column(String(200))
    article_id = Column(Integer, ForeignKey("articles.id"))


class Label(Base, BooleanSoftDeleteMixin):
    """Label soft deleted through a flag."""

    __tablename__ = "labels"

    id = Column(Integer, primary_key=True)
    name = Column(String(50))


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def database_url(tmp_path):
    """Create a SQLite database file with seeded records."""
    url = f"sqlite:///{tmp_path / 'records.db'}"
    engine = create_engine(url)
    Base.metadata.create_all(engine)

    with sessionmaker(bind=engine)() as session:
        session.add_all(
            [
                Article(id=1, title="Launch", revisions=[Revision(body="draft")]),
                Article(id=2, title="Roadmap"),
                Label(id=1, name="urgent"),
            ]
        )
        session.commit()

    engine.dispose()
    return url


@pytest.fixture
def models():
    """Route model loading to the test base."""
    with patch("soft_deletable.cli.load_models", return_value=Base) as mock_load:
        yield mock_load


def read_rows(url, model):
    """Read all rows of a model without soft delete listeners."""
    engine = create_engine(url)
    with sessionmaker(bind=engine)() as session:
        rows = session.scalars(select(model).order_by(model.id)).all()
        result = [(row.id, row.deleted) for row in rows]
    engine.dispose()
    return result


def invoke_records(runner, database_url, *args):
    """Invoke a records command against the test database."""
    return runner.invoke(
        cli,
        ["records", *args, "--models", "tests:Base", "--database-url", database_url],
    )


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self, runner):
        """Test CLI help command."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "soft-deletable" in result.output

    def test_cli_version(self, runner):
        """Test CLI version command."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "version" in result.output.lower()

    def test_cli_no_command(self, runner):
        """Test CLI with no command shows info."""
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "soft-deletable" in result.output


class TestConfigCommands:
    """Test configuration-related commands."""

    def test_config_show(self, runner):
        """Test config show command."""
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        assert "read_option_name" in result.output

    def test_config_show_json(self, runner):
        """Test config show with JSON format."""
        result = runner.invoke(cli, ["config", "show", "--format", "json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["read_option_name"] == "is_deleted"

    def test_config_show_yaml(self, runner):
        """Test config show with YAML format."""
        result = runner.invoke(cli, ["config", "show", "--format", "yaml"])
        assert result.exit_code == 0
        assert "default_field: deleted" in result.output

    def test_config_validate(self, runner):
        """Test config validate command."""
        result = runner.invoke(cli, ["config", "validate"])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "No database URL" in result.output

    def test_config_validate_file(self, runner, tmp_path):
        """Test validating a configuration file."""
        path = tmp_path / "soft_delete.yaml"
        path.write_text("timezone: Mars/Olympus\n")

        result = runner.invoke(cli, ["config", "validate", "--file", str(path)])
        assert result.exit_code == 1
        assert "validation failed" in result.output


class TestModelsCommands:
    """Test model inspection."""

    def test_models_inspect(self, runner, models):
        """Test listing deletable models and their associations."""
        result = runner.invoke(cli, ["models", "inspect", "--models", "tests:Base"])
        assert result.exit_code == 0
        assert "Article" in result.output
        assert "Label" in result.output
        assert "revisions: has_many Revision" in result.output
        assert "dependent" in result.output
        models.assert_called_once_with("tests:Base")

    def test_load_models_requires_attribute(self):
        """Test malformed model paths are rejected."""
        with pytest.raises(click.BadParameter):
            load_models("myapp.models")

    def test_load_models_imports_attribute(self):
        """Test a module:attribute path is resolved."""
        assert load_models("json:loads") is json.loads


class TestRecordsCommands:
    """Test record management commands."""

    def test_list_active(self, runner, database_url, models):
        """Test listing active records."""
        result = invoke_records(runner, database_url, "list", "Article")
        assert result.exit_code == 0
        assert "Launch" in result.output
        assert "Roadmap" in result.output

    def test_list_csv(self, runner, database_url, models):
        """Test listing records as CSV."""
        result = invoke_records(
            runner, database_url, "list", "Article", "--format", "csv"
        )
        assert result.exit_code == 0
        lines = [line for line in result.output.splitlines() if line]
        assert set(lines[0].split(",")) == {"id", "title", "deleted"}
        assert len(lines) == 3

    def test_delete_then_list_deleted(self, runner, database_url, models):
        """Test soft deleting and listing deleted records."""
        result = invoke_records(runner, database_url, "delete", "Article", "1")
        assert result.exit_code == 0
        assert "Soft deleted Article 1" in result.output

        result = invoke_records(
            runner, database_url, "list", "Article", "--state", "deleted", "--format", "json"
        )
        assert result.exit_code == 0
        assert [row["id"] for row in json.loads(result.output)] == [1]

        articles = read_rows(database_url, Article)
        assert articles[0][1] is not None
        assert articles[1][1] is None
        assert read_rows(database_url, Revision)[0][1] is not None

    def test_delete_twice_purges(self, runner, database_url, models):
        """Test deleting a soft deleted record removes it physically."""
        result = invoke_records(runner, database_url, "delete", "Label", "1")
        assert result.exit_code == 0
        assert read_rows(database_url, Label) == [(1, True)]

        result = invoke_records(runner, database_url, "delete", "Label", "1")
        assert result.exit_code == 0
        assert "Physically deleted Label 1 (already_deleted)" in result.output
        assert read_rows(database_url, Label) == []

    def test_list_limit(self, runner, database_url, models):
        """Test the limit applies in primary key order."""
        result = invoke_records(
            runner, database_url, "list", "Article", "--limit", "1", "--format", "json"
        )
        assert result.exit_code == 0
        assert [row["id"] for row in json.loads(result.output)] == [1]

    def test_delete_missing(self, runner, database_url, models):
        """Test deleting an unknown record."""
        result = invoke_records(runner, database_url, "delete", "Article", "99")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_restore(self, runner, database_url, models):
        """Test restoring a record and its dependents."""
        invoke_records(runner, database_url, "delete", "Article", "1")

        result = invoke_records(runner, database_url, "restore", "Article", "1")
        assert result.exit_code == 0
        assert "Restored Article 1" in result.output
        assert read_rows(database_url, Article)[0][1] is None
        assert read_rows(database_url, Revision)[0][1] is None

    def test_restore_active_record_without_cascade(self, runner, database_url, models):
        """Test restoring a record that is not deleted."""
        result = invoke_records(
            runner, database_url, "restore", "Label", "1", "--no-cascade"
        )
        assert result.exit_code == 0
        assert read_rows(database_url, Label) == [(1, False)]

    def test_restore_missing(self, runner, database_url, models):
        """Test restoring an unknown record."""
        result = invoke_records(runner, database_url, "restore", "Label", "7")
        assert result.exit_code == 1
        assert "could not be restored" in result.output

    def test_purge(self, runner, database_url, models):
        """Test purging a soft deleted record."""
        invoke_records(runner, database_url, "delete", "Label", "1")

        result = invoke_records(runner, database_url, "purge", "Label", "1", "--yes")
        assert result.exit_code == 0
        assert "Purged Label 1" in result.output
        assert read_rows(database_url, Label) == []

    def test_purge_active_record(self, runner, database_url, models):
        """Test purging a record that is not soft deleted."""
        result = invoke_records(runner, database_url, "purge", "Label", "1", "--yes")
        assert result.exit_code == 1
        assert "not deleted" in result.output
        assert read_rows(database_url, Label) == [(1, False)]

    def test_deleted_since_requires_timestamp(self, runner, database_url, models):
        """Test the date filter on a boolean marker."""
        result = invoke_records(
            runner, database_url, "list", "Label", "--deleted-since", "2024-01-01"
        )
        assert result.exit_code == 2

    def test_deleted_since(self, runner, database_url, models):
        """Test filtering deleted records by deletion date."""
        invoke_records(runner, database_url, "delete", "Article", "2")

        result = invoke_records(
            runner,
            database_url,
            "list",
            "Article",
            "--state",
            "deleted",
            "--deleted-since",
            "2000-01-01",
            "--format",
            "json",
        )
        assert result.exit_code == 0
        assert [row["id"] for row in json.loads(result.output)] == [2]

    def test_unknown_model(self, runner, database_url, models):
        """Test an unknown model name."""
        result = invoke_records(runner, database_url, "list", "Nope")
        assert result.exit_code == 2

    def test_missing_database_url(self, runner, models):
        """Test record commands without a database URL."""
        result = runner.invoke(
            cli, ["records", "list", "Article", "--models", "tests:Base"]
        )
        assert result.exit_code == 2
        assert "No database URL" in result.output
