import os
import sys
from pathlib import Path


class ToolPaths:
    """
    ToolPaths resolves where each supported tool keeps its data,
    relative to a home directory (the user's home unless overridden).
    """

    def __init__(self, home: "Path | None" = None) -> "None":
        self.home = home if home is not None else Path.home()

    def _data_dir(self) -> "Path":
        # where desktop apps keep per-user application data
        if sys.platform == "darwin":
            return self.home / "Library" / "Application Support"
        if sys.platform == "win32":
            appdata = os.environ.get("APPDATA")
            return Path(appdata) if appdata else self.home / "AppData" / "Roaming"
        return self.home / ".config"

    # Claude Code

    def claude_projects_dir(self) -> "Path":
        return self.home / ".claude" / "projects"

    def claude_config_file(self) -> "Path":
        return self.home / ".claude.json"

    # Cursor

    def cursor_global_db(self) -> "Path":
        return self._data_dir() / "Cursor" / "User" / "globalStorage" / "state.vscdb"

    def cursor_workspace_storage(self) -> "Path":
        return self._data_dir() / "Cursor" / "User" / "workspaceStorage"

    # OpenCode

    def opencode_storage_dir(self) -> "Path":
        if sys.platform == "win32":
            return self._data_dir() / "opencode" / "storage" / "message"
        return self.home / ".local" / "share" / "opencode" / "storage" / "message"

    # Warp

    def warp_db(self) -> "Path":
        if sys.platform == "darwin":
            return (
                self.home
                / "Library"
                / "Group Containers"
                / "2BBY89MBSN.dev.warp"
                / "Library"
                / "Application Support"
                / "dev.warp.Warp-Stable"
                / "warp.sqlite"
            )
        if sys.platform == "win32":
            return self._data_dir() / "Warp" / "warp.sqlite"
        return self.home / ".local" / "share" / "warp" / "warp.sqlite"

    def warp_logs_dir(self) -> "Path":
        if sys.platform == "darwin":
            return self.home / "Library" / "Logs"
        if sys.platform == "win32":
            return self._data_dir() / "Warp" / "logs"
        return self.home / ".local" / "share" / "warp" / "logs"

    # Windsurf

    def windsurf_cascade_dir(self) -> "Path":
        return self.home / ".codeium" / "windsurf" / "cascade"

    def windsurf_config_dir(self) -> "Path":
        return self.home / ".codeium"

    # GitHub Copilot

    def copilot_hosts_file(self) -> "Path":
        return self.home / ".config" / "github-copilot" / "hosts.json"

    def vscode_logs_dir(self) -> "Path":
        return self._data_dir() / "Code" / "logs"

    # VS Code extensions

    def vscode_global_storage(self) -> "Path":
        return self._data_dir() / "Code" / "User" / "globalStorage"

    # Cline and its Roo Code fork

    def cline_tasks_dir(self) -> "Path":
        return self.vscode_global_storage() / "saoudrizwan.claude-dev" / "tasks"

    def roo_tasks_dir(self) -> "Path":
        return self.vscode_global_storage() / "rooveterinary.roo-cline" / "tasks"

    def roo_usage_tracking_file(self) -> "Path":
        return self.home / ".roo" / "usage-tracking.json"

    # Gemini CLI

    def gemini_dir(self) -> "Path":
        return self.home / ".gemini"

    # Amazon Q

    def amazon_q_log_file(self) -> "Path":
        return self.home / ".aws" / "q" / "q_developer_log.txt"

    def aws_config_file(self) -> "Path":
        return self.home / ".aws" / "config"

    # Tabnine

    def tabnine_logs_dir(self) -> "Path":
        if sys.platform in ("darwin", "win32"):
            return self._data_dir() / "TabNine" / "logs"
        return self.home / ".local" / "share" / "TabNine" / "logs"

    # Gemini Code Assist and Sourcegraph Cody

    def gemini_code_assist_dir(self) -> "Path":
        return self.vscode_global_storage() / "google.geminicodeassist"

    def cody_dir(self) -> "Path":
        return self.vscode_global_storage() / "sourcegraph.cody-ai"
