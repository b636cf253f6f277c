"""Tests for the command-line entry point."""

import pytest
from typer.testing import CliRunner

import app as cli
from models.edits import PipelineResult
from utilities.config import Config, DatabaseConfig, SentryConfig

pytestmark = [
    pytest.mark.domain_pipeline,
]

runner = CliRunner()

CONFIG_TOML = """
[database]
dsn = "postgresql://user:secret@db:5432/gallery"

[pipeline]
poll_interval = 0.0
"""


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for name in ("DATABASE_DSN", "S3_ENDPOINT_URL", "S3_BUCKET_NAME", "S3_REGION", "SENTRY_DSN", "APP_ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.toml"
    path.write_text(CONFIG_TOML)
    return path


@pytest.fixture
def mock_run_pipeline(mocker):
    return mocker.patch("app.run_pipeline", new=mocker.AsyncMock(return_value=PipelineResult(fetched=1, applied=[1])))


class TestCommand:
    """Test exit codes and option handling."""

    def test_successful_run_exits_zero(self, config_file, mock_run_pipeline):
        result = runner.invoke(cli.app, ["--config", str(config_file)])

        assert result.exit_code == 0
        mock_run_pipeline.assert_awaited_once()
        config = mock_run_pipeline.call_args.args[0]
        assert config.database.dsn == "postgresql://user:secret@db:5432/gallery"
        assert config.pipeline.dry_run is False

    def test_failed_edits_exit_one(self, config_file, mock_run_pipeline):
        """Any failed edit gives a non-zero exit code."""
        mock_run_pipeline.return_value = PipelineResult(fetched=2, applied=[1], failed=[2])

        result = runner.invoke(cli.app, ["--config", str(config_file)])

        assert result.exit_code == cli.EXIT_EDIT_FAILURES

    def test_abandoned_edits_do_not_fail_the_run(self, config_file, mock_run_pipeline):
        mock_run_pipeline.return_value = PipelineResult(abandoned=3)

        result = runner.invoke(cli.app, ["--config", str(config_file)])

        assert result.exit_code == 0

    def test_missing_config_exits_two(self, tmp_path, mock_run_pipeline):
        result = runner.invoke(cli.app, ["--config", str(tmp_path / "missing.toml")])

        assert result.exit_code == cli.EXIT_CONFIG_ERROR
        mock_run_pipeline.assert_not_awaited()

    def test_dry_run_flag(self, config_file, mock_run_pipeline):
        """--dry-run is passed through to the pipeline config."""
        result = runner.invoke(cli.app, ["--config", str(config_file), "--dry-run"])

        assert result.exit_code == 0
        assert mock_run_pipeline.call_args.args[0].pipeline.dry_run is True

    def test_sentry_initialized_from_environment(self, config_file, mock_run_pipeline, mocker, monkeypatch):
        monkeypatch.setenv("SENTRY_DSN", "https://key@sentry.example.com/1")
        sentry_init = mocker.patch("app.sentry_sdk.init")

        result = runner.invoke(cli.app, ["--config", str(config_file)])

        assert result.exit_code == 0
        assert sentry_init.call_args.kwargs["dsn"] == "https://key@sentry.example.com/1"


class TestInitSentry:
    """Test Sentry initialization."""

    def test_without_dsn(self, mocker):
        sentry_init = mocker.patch("app.sentry_sdk.init")

        assert cli.init_sentry(SentryConfig()) is False
        sentry_init.assert_not_called()

    def test_with_dsn(self, mocker):
        sentry_init = mocker.patch("app.sentry_sdk.init")

        assert cli.init_sentry(SentryConfig(dsn="https://key@sentry.example.com/1", environment="production")) is True
        sentry_init.assert_called_once_with(
            dsn="https://key@sentry.example.com/1",
            environment="production",
            traces_sample_rate=0.0,
        )


class TestRunPipeline:
    """Test pool and service lifecycle."""

    @pytest.fixture
    def mock_pool(self, mocker):
        pool = mocker.AsyncMock()
        mocker.patch("app.asyncpg.create_pool", new=mocker.AsyncMock(return_value=pool))
        return pool

    async def test_runs_service_and_closes_pool(self, mocker, mock_pool, blob_store):
        service = mocker.AsyncMock()
        service.run.return_value = PipelineResult(fetched=0)
        provide = mocker.patch("app.provide_pipeline_service", return_value=service)
        config = Config(database=DatabaseConfig(dsn="postgresql://db/gallery"))

        result = await cli.run_pipeline(config, blob_store)

        assert result == PipelineResult(fetched=0)
        provide.assert_called_once_with(mock_pool, blob_store, config.pipeline)
        mock_pool.close.assert_awaited_once()

    async def test_pool_closed_when_run_fails(self, mocker, mock_pool, blob_store):
        service = mocker.AsyncMock()
        service.run.side_effect = RuntimeError("database went away")
        mocker.patch("app.provide_pipeline_service", return_value=service)
        config = Config(database=DatabaseConfig(dsn="postgresql://db/gallery"))

        with pytest.raises(RuntimeError):
            await cli.run_pipeline(config, blob_store)

        mock_pool.close.assert_awaited_once()
