import json
from pathlib import Path

import pytest

from usagetally.__main__ import build_providers, main
from usagetally.config import GITHUB_TOKEN_ENV_VARS, OPENAI_KEY_ENV_VARS, Config
from usagetally.paths import ToolPaths
from usagetally.pricing import PricingTable

PROVIDER_NAMES = [
    "claude-code",
    "cursor",
    "github-copilot",
    "cline",
    "windsurf",
    "warp",
    "opencode",
    "openai-codex",
    "gemini-cli",
    "amazon-q",
    "tabnine",
    "gemini-code-assist",
    "sourcegraph-cody",
    "replit",
]


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: "Path", monkeypatch: "pytest.MonkeyPatch") -> "Path":
    """
    points every tool at an empty home and drops credentials so no
    test reaches the network.
    """
    for name in (*OPENAI_KEY_ENV_VARS, *GITHUB_TOKEN_ENV_VARS, "USAGETALLY_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("USAGETALLY_HOME", str(tmp_path))
    monkeypatch.setenv("APPDATA", str(tmp_path / "AppData"))
    return tmp_path


class TestBuildProviders:
    def test_registration_order(self, isolated_home: "Path") -> "None":
        providers = build_providers(
            Config(),
            ToolPaths(isolated_home),
            PricingTable.default(),
        )
        assert [p.name for p in providers] == PROVIDER_NAMES

    def test_warp_checks_its_logs_dir(self, isolated_home: "Path") -> "None":
        paths = ToolPaths(isolated_home)
        providers = build_providers(Config(), paths, PricingTable.default())

        warp = next(p for p in providers if p.name == "warp")
        assert warp.paths_to_check() == [str(paths.warp_db()), str(paths.warp_logs_dir())]


class TestMain:
    def test_json_report_has_a_row_per_tool(
        self,
        isolated_home: "Path",
        capsys: "pytest.CaptureFixture[str]",
    ) -> "None":
        session = isolated_home / ".claude" / "projects" / "repo" / "s.jsonl"
        session.parent.mkdir(parents=True)
        session.write_text(
            json.dumps({"message": {"usage": {"input_tokens": 5, "output_tokens": 1}}})
        )

        main(["usage", "--format", "json"])

        rows = json.loads(capsys.readouterr().out)
        assert [row["name"] for row in rows] == PROVIDER_NAMES
        statuses = {row["name"]: row["status"] for row in rows}
        assert statuses["claude-code"] == "active"
        assert statuses["cursor"] == "not_found"
        assert statuses["openai-codex"] == "no_key"
        assert statuses["github-copilot"] == "no_key"
        assert statuses["replit"] == "link_only"
        assert statuses["gemini-code-assist"] == "not_found"
        assert statuses["amazon-q"] == "not_found"
        assert rows[0]["usage"]["total"]["input_tokens"] == 5

    def test_tool_filter(self, capsys: "pytest.CaptureFixture[str]") -> "None":
        main(["-t", "replit", "-f", "csv"])

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 2
        assert lines[1].startswith("Replit,Link Only,")

    def test_unknown_tool_exits_with_error(
        self,
        capsys: "pytest.CaptureFixture[str]",
    ) -> "None":
        with pytest.raises(SystemExit) as exc_info:
            main(["--tool", "notepad"])

        assert exc_info.value.code == 1
        assert "notepad" in capsys.readouterr().err

    def test_list(self, capsys: "pytest.CaptureFixture[str]") -> "None":
        main(["list"])

        out = capsys.readouterr().out
        for name in PROVIDER_NAMES:
            assert name in out

    def test_doctor(self, capsys: "pytest.CaptureFixture[str]") -> "None":
        main(["doctor", "--tool", "replit"])

        out = capsys.readouterr().out
        assert "replit.com/usage" in out
        assert "1/1 paths found" in out
