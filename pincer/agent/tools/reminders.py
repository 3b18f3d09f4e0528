"""Reminder tools backed by the cron service."""

from typing import Any

from pincer.agent.tools.base import Tool, ToolContext
from pincer.cron.service import CronService
from pincer.errors import PincerError


class _ReminderTool(Tool):
    def __init__(self, cron: CronService):
        self.cron = cron


class SetReminderTool(_ReminderTool):
    @property
    def name(self) -> str:
        return "set_reminder"

    @property
    def description(self) -> str:
        return (
            "Set a recurring reminder or scheduled task. The message will be sent to you at the "
            'specified schedule so you can act on it. Use standard cron expressions (e.g. "0 9 * * *" '
            'for daily at 9am, "*/30 * * * *" for every 30 minutes, "0 9 * * 1" for every Monday at 9am).'
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": 'A short unique name, e.g. "morning-greeting"'},
                "cron": {"type": "string", "description": "Cron expression for the schedule"},
                "message": {
                    "type": "string",
                    "description": "The message sent to you when the reminder fires. Be specific about what to do.",
                },
            },
            "required": ["name", "cron", "message"],
        }

    async def execute(self, ctx: ToolContext, name: str, cron: str, message: str, **kwargs: Any) -> str:
        try:
            job = self.cron.add_job(name=name, cron=cron, message=message, profile=ctx.profile)
        except PincerError as e:
            return f"Failed to create reminder: {e}"
        return (
            f'Reminder "{job.name}" created! Schedule: {job.cron}. '
            f'I\'ll receive the message "{message}" on that schedule.'
        )


class ListRemindersTool(_ReminderTool):
    @property
    def name(self) -> str:
        return "list_reminders"

    @property
    def description(self) -> str:
        return "List all scheduled reminders and recurring tasks."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> str:
        jobs = self.cron.list_jobs()
        if not jobs:
            return "No reminders set."
        lines = []
        for j in jobs:
            line = f'• {j.name} [{"active" if j.enabled else "paused"}] - {j.cron} - "{j.message}"'
            if j.last_run:
                line += f" (last ran: {j.last_run})"
            lines.append(line)
        return "\n".join(lines)


class RemoveReminderTool(_ReminderTool):
    @property
    def name(self) -> str:
        return "remove_reminder"

    @property
    def description(self) -> str:
        return "Remove a scheduled reminder by name."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"name": {"type": "string", "description": "The name of the reminder to remove"}},
            "required": ["name"],
        }

    async def execute(self, ctx: ToolContext, name: str, **kwargs: Any) -> str:
        if not self.cron.remove_job(name):
            return f'Failed to remove reminder: Job "{name}" not found.'
        return f'Reminder "{name}" removed.'


class ToggleReminderTool(_ReminderTool):
    @property
    def name(self) -> str:
        return "toggle_reminder"

    @property
    def description(self) -> str:
        return "Enable or disable a scheduled reminder by name."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "The name of the reminder"},
                "enabled": {"type": "boolean", "description": "True to enable, false to disable"},
            },
            "required": ["name", "enabled"],
        }

    async def execute(self, ctx: ToolContext, name: str, enabled: bool, **kwargs: Any) -> str:
        try:
            self.cron.toggle_job(name, enabled)
        except PincerError as e:
            return f"Failed to toggle reminder: {e}"
        return f'Reminder "{name}" is now {"enabled" if enabled else "disabled"}.'
