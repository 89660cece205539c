"""Exceptions raised by the conversation and tool layers.

Missing stored records raise FileNotFoundError and invalid input raises
ValueError; the classes here cover the states that have no builtin
equivalent. Routers translate all of them into HTTP errors.
"""


class ToolRelayError(Exception):
    """Base class for toolrelay-server errors."""


class ChatBusyError(ToolRelayError):
    """A turn, tool batch or approval is already outstanding for the chat."""


class ApprovalNotPendingError(ToolRelayError):
    """An approval decision arrived while no batch was awaiting one."""


class ProviderError(ToolRelayError):
    """A remote tool provider could not be reached or reported a failure."""
