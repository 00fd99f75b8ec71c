"""
Think tool - a scratchpad the model can use to reason before acting.
"""

from typing import Any

from .base import BaseTool


class ThinkTool(BaseTool):
    @property
    def name(self) -> str:
        return "think"

    @property
    def description(self) -> str:
        return (
            "Write down your reasoning before taking an action. Nothing is executed; "
            "use it to plan multi-step work or check results against the request."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "thought": {
                    "type": "string",
                    "description": "Your reasoning",
                },
            },
            "required": ["thought"],
        }

    async def execute(self, thought: str) -> str:
        return f"Thought recorded: {thought}"
