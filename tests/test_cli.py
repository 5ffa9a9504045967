import subprocess

import pytest
from typer.testing import CliRunner

from changescribe.cli import app
from changescribe.config_loader import REPO_CONFIG

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("CHANGESCRIBE_BASE_BRANCH", raising=False)
    monkeypatch.delenv("CHANGESCRIBE_DRAFT", raising=False)


@pytest.fixture
def fake_tools(monkeypatch, history_factory, submitter_factory, diff_factory):
    """Swap the git and gh adapters the CLI builds for in-memory fakes."""
    created = {}

    def install(branch="feature/A8-14685-null-token", subjects=("fix: handle null token in parser",), **submitter):
        history = history_factory(
            branch=branch, subjects=subjects, diff=diff_factory(["src/parser.py"], 4, 1)
        )
        fake_submitter = submitter_factory(**submitter)

        def make_submitter(repo, config):
            created["submit_config"] = config
            return fake_submitter

        monkeypatch.setattr("changescribe.cli.GitHistory", lambda repo, remote="origin": history)
        monkeypatch.setattr("changescribe.cli.GhSubmitter", make_submitter)
        created["history"] = history
        created["submitter"] = fake_submitter
        return created

    return install


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "CHANGESCRIBE v0.3.0" in result.output


def test_init_writes_repo_config(tmp_path):
    result = runner.invoke(app, ["init", str(tmp_path)])

    assert result.exit_code == 0
    assert (tmp_path / REPO_CONFIG).exists()

    again = runner.invoke(app, ["init", str(tmp_path)])
    assert "already exists" in again.output


def test_preview_prints_the_draft(fake_tools, tmp_path):
    tools = fake_tools()

    result = runner.invoke(app, ["preview", "--repo", str(tmp_path)])

    assert result.exit_code == 0
    assert "[A8-14685] Handle null token in parser" in result.output
    assert "Complexity: trivial" in result.output
    assert tools["submitter"].submitted == []


def test_preview_failure_exits_1(fake_tools, tmp_path):
    fake_tools(branch="main")

    result = runner.invoke(app, ["preview", "--repo", str(tmp_path)])

    assert result.exit_code == 1
    assert "invalid_branch_state" in result.output


def test_create_opens_pull_request(fake_tools, tmp_path):
    tools = fake_tools()

    result = runner.invoke(app, ["create", "--repo", str(tmp_path), "--yes", "--why", "Parser crashed on empty input"])

    assert result.exit_code == 0
    assert "https://github.com/acme/app/pull/7" in result.output
    draft, push = tools["submitter"].submitted[0]
    assert draft.body.startswith("## Why\nParser crashed on empty input\n")
    assert push is True


def test_create_applies_cli_overrides(fake_tools, tmp_path):
    tools = fake_tools()

    runner.invoke(
        app,
        ["create", "--repo", str(tmp_path), "-y", "--draft", "--reviewer", "octocat", "--label", "bug"],
    )

    config = tools["submit_config"]
    assert config.draft is True
    assert config.reviewers == ["octocat"]
    assert config.labels == ["bug"]


def test_create_on_base_branch_exits_1(fake_tools, tmp_path):
    tools = fake_tools(branch="main")

    result = runner.invoke(app, ["create", "--repo", str(tmp_path), "--yes"])

    assert result.exit_code == 1
    assert "invalid_branch_state" in result.output
    assert tools["submitter"].submitted == []


def test_create_submission_failure_keeps_draft(fake_tools, tmp_path):
    fake_tools(failures=1)

    result = runner.invoke(app, ["create", "--repo", str(tmp_path), "--yes"])

    assert result.exit_code == 1
    assert "submission_failed" in result.output
    assert "HTTP 422" in result.output
    assert "draft was kept" in result.output


def test_invalid_repo_config_exits_2(fake_tools, tmp_path):
    fake_tools()
    path = tmp_path / REPO_CONFIG
    path.parent.mkdir(parents=True)
    path.write_text("submit: [broken\n")

    result = runner.invoke(app, ["preview", "--repo", str(tmp_path)])

    assert result.exit_code == 2


def _status_with_gh(monkeypatch, run):
    monkeypatch.setattr("changescribe.cli.shutil.which", lambda tool: f"/usr/bin/{tool}")
    monkeypatch.setattr("changescribe.cli.subprocess.run", run)
    return runner.invoke(app, ["status"])


def test_status_reports_hung_gh_instead_of_crashing(monkeypatch):
    def hang(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, 30)

    result = _status_with_gh(monkeypatch, hang)

    assert result.exit_code == 0
    assert "timed out" in result.output
    assert "Confirm inferred ticket" in result.output


def test_status_reports_authenticated_gh(monkeypatch):
    result = _status_with_gh(
        monkeypatch, lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
    )

    assert result.exit_code == 0
    assert "Authenticated" in result.output
