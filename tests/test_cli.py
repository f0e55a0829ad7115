import pytest

from usagetally.cli import parse_args


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: "pytest.MonkeyPatch") -> "None":
    monkeypatch.delenv("USAGETALLY_TIMEOUT", raising=False)


class TestParseArgs:
    def test_defaults(self) -> "None":
        command, config = parse_args([])
        assert command == "usage"
        assert config.tool is None
        assert config.output_format == "table"
        assert config.verbose is False
        assert config.log_level == "warning"

    def test_options(self) -> "None":
        command, config = parse_args(
            ["-t", "cursor", "-f", "json", "-v", "--timeout", "3", "--log.level", "debug"]
        )
        assert command == "usage"
        assert config.tool == "cursor"
        assert config.output_format == "json"
        assert config.verbose is True
        assert config.timeout == 3.0
        assert config.log_level == "debug"

    @pytest.mark.parametrize("command", ["doctor", "list"])
    def test_commands(self, command: "str") -> "None":
        assert parse_args([command])[0] == command

    def test_rejects_unknown_format(self) -> "None":
        with pytest.raises(SystemExit):
            parse_args(["--format", "xml"])

    def test_rejects_negative_timeout(self) -> "None":
        with pytest.raises(SystemExit):
            parse_args(["--timeout", "-1"])

    def test_invalid_env_timeout_is_a_usage_error(
        self,
        monkeypatch: "pytest.MonkeyPatch",
    ) -> "None":
        monkeypatch.setenv("USAGETALLY_TIMEOUT", "abc")
        with pytest.raises(SystemExit):
            parse_args([])
