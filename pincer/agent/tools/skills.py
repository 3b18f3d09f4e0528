"""Durable script storage ("skills") confined to one directory."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pincer.agent.tools.base import Tool, ToolContext
from pincer.errors import ToolError


def _check_name(name: str) -> None:
    if not name or "/" in name or "\\" in name or ".." in name:
        raise ToolError("Invalid skill name: must not contain path separators")


class _SkillTool(Tool):
    def __init__(self, skills_dir: Path | str):
        self.skills_dir = Path(skills_dir).expanduser()
        self.skills_dir.mkdir(parents=True, exist_ok=True)


class WriteSkillTool(_SkillTool):
    @property
    def name(self) -> str:
        return "write_skill"

    @property
    def description(self) -> str:
        return (
            "Write a reusable script/skill to disk. The skill persists across conversations "
            "and can be executed later with run_command."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": 'Filename with extension, e.g. "backup.sh"'},
                "content": {"type": "string", "description": "Full script content including shebang line"},
                "description": {"type": "string", "description": "Brief description of what the skill does"},
            },
            "required": ["name", "content"],
        }

    async def execute(
        self, ctx: ToolContext, name: str, content: str, description: str | None = None, **kwargs: Any
    ) -> str:
        _check_name(name)
        path = self.skills_dir / name
        path.write_text(content, encoding="utf-8")
        path.chmod(0o755)
        msg = f'Skill "{name}" written to {path}'
        return f"{msg}\nDescription: {description}" if description else msg


class ReadSkillTool(_SkillTool):
    @property
    def name(self) -> str:
        return "read_skill"

    @property
    def description(self) -> str:
        return "Read the content of an existing skill/script."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "The skill filename to read"},
            },
            "required": ["name"],
        }

    async def execute(self, ctx: ToolContext, name: str, **kwargs: Any) -> str:
        _check_name(name)
        path = self.skills_dir / name
        if not path.is_file():
            return f'Skill "{name}" not found.'
        return path.read_text(encoding="utf-8")


class ListSkillsTool(_SkillTool):
    @property
    def name(self) -> str:
        return "list_skills"

    @property
    def description(self) -> str:
        return "List all saved skills/scripts with their sizes."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> str:
        files = sorted(p for p in self.skills_dir.iterdir() if p.is_file())
        if not files:
            return "No skills saved yet."
        lines = []
        for path in files:
            st = path.stat()
            modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).strftime("%Y-%m-%d")
            lines.append(f"- {path.name} ({st.st_size} bytes, modified {modified})")
        return "\n".join(lines)
