"""
Error taxonomy for the runtime.

Every error raised by the engine derives from :class:`AgentsError`.  Errors raised by user
callbacks (tools, hand-offs, hooks) are *not* wrapped: they reach the caller as the very same
exception object.
"""


class AgentsError(RuntimeError):
    """Base class for every error raised by the runtime itself."""


class UserError(AgentsError):
    """Raised when the runtime is used incorrectly or receives input it cannot accept."""


class ConfigurationError(UserError):
    """Raised before any model call when an agent, tool or hand-off set is misconfigured."""


class UnsupportedInDialectError(ConfigurationError):
    """Raised when a tool or item has no equivalent in the selected wire dialect."""

    def __init__(self, feature: str, dialect: str):
        super().__init__(f"{feature} is not supported in the {dialect} dialect.")
        self.feature = feature
        self.dialect = dialect


class HandoffInputError(UserError):
    """Raised when the JSON input of a hand-off is missing, malformed or fails validation."""


class UnknownToolError(UserError):
    """Raised when the model requests a tool that the current agent does not have."""

    def __init__(self, tool_name: str, agent_name: str):
        super().__init__(f"Tool '{tool_name}' not found in agent '{agent_name}'.")
        self.tool_name = tool_name
        self.agent_name = agent_name


class InvalidToolArgumentsError(UserError):
    """Raised when the model calls a function tool with arguments that fail validation."""


class OutputValidationError(UserError):
    """Raised when the final output does not validate against the agent's output schema."""


class ModelCallError(AgentsError):
    """Raised when the model client fails; the transport error is kept as ``__cause__``."""


class MaxTurnsExceeded(AgentsError):
    """Raised when a run reaches its turn limit without producing a final output."""

    def __init__(self, max_turns: int):
        super().__init__(f"Max turns ({max_turns}) exceeded")
        self.max_turns = max_turns
