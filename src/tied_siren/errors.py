class TiedSirenError(Exception):
    """Base class for errors raised by tied_siren."""


class NotFoundError(TiedSirenError, LookupError):
    """Raised when a strict lookup by id finds nothing."""


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        super().__init__(f"Block session not found: {session_id}")
        self.session_id = session_id


class BlocklistNotFoundError(NotFoundError):
    def __init__(self, blocklist_id: str):
        super().__init__(f"Blocklist not found: {blocklist_id}")
        self.blocklist_id = blocklist_id


class BlocklistLockedError(TiedSirenError):
    """Raised when removing a blocklist that an active or scheduled session uses."""

    def __init__(self, blocklist_id: str):
        super().__init__(
            f"Blocklist {blocklist_id} is used by an active or scheduled session"
        )
        self.blocklist_id = blocklist_id
