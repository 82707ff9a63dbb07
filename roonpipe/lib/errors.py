"""Error taxonomy shared by the browse engine and the IPC boundary."""


class RoonPipeError(Exception):
    """Base class for every error RoonPipe raises on purpose."""


class PreconditionFailed(RoonPipeError):
    """No paired core, or no tracked zone to target."""


class RemoteError(RoonPipeError):
    """The core rejected a browse/load call.

    ``cause`` carries whatever the service handed back (an exception or the
    error body) so callers can log it.
    """

    def __init__(self, message: str, cause=None):
        super().__init__(message)
        self.cause = cause


class NotFound(RoonPipeError):
    """An item or action could not be located during execution."""


class IPCError(RoonPipeError):
    """Client-side socket failure or an error reply from the daemon."""
