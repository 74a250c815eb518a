"""Domain and application errors."""


class CrewError(Exception):
    """Base for crew-council errors."""
    pass


class NotFound(CrewError):
    """A referenced entity does not exist."""
    pass


class AgentNotFound(NotFound):
    """No agent with the given name is in the registry."""

    def __init__(self, name: str):
        super().__init__(f"Agent not found: {name!r}")
        self.name = name


class TaskNotFound(NotFound):
    """No task with the given id has been created in this process."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id!r}")
        self.task_id = task_id


class InvalidSelection(CrewError):
    """The router chose a name outside the candidate set, or the orchestrator itself."""
    pass


class CompletionUnavailable(CrewError):
    """The completion backend call failed, timed out, or returned an unusable response."""
    pass


class PersistenceFailure(CrewError):
    """The agent registry could not be written to its backing file."""
    pass


class InvalidEngine(CrewError, ValueError):
    """Engine is not one of the agent's allowed engine options."""
    pass


class InvalidTransition(CrewError):
    """A task status change that the lifecycle does not allow (e.g. leaving a terminal state)."""
    pass
