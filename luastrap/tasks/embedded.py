"""Embedded scripting runtime (Lua). Not implemented yet."""

import structlog


class EmbeddedInterpreter:
    """Handle to the embedded Lua interpreter for a session."""

    name = "Lua"

    def __init__(self):
        self.logger = structlog.get_logger(__name__)

    def execute(self, script: str, task_name: str = None) -> None:
        self.logger.error("Lua is not implemented yet!", task_name=task_name)
