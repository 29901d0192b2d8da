"""
STExceptions — custom exceptions for the Survey Tool forum engine.

Usage:
    from STExceptions import STError, STServerError, STValidationError

    try:
        result = await session.load_and_render("fr_CA")
    except STServerError as e:
        # Server answered with {"err": ...} or a non-200 status
        show_error(e.message)
    except STTransportError:
        # Network down, proxy broken, DNS, ...
        ...
    except STError:
        # Catch-all for anything raised by the forum engine
        ...

All exceptions are subclasses of STError so you can catch everything
with a single except clause if you prefer.

Two conditions are deliberately NOT surfaced to the host:
    STCyclicThreadError   — raised by ThreadResolver on corrupt parent chains,
                            caught while building the forest; the post becomes
                            its own thread and a warning is logged.
    STStaleFetchDiscarded — a response that lost the race against a newer
                            fetch; ForumSession drops it and returns None.
"""


class STError(Exception):
    """
    Base class for all forum engine errors.

    Attributes:
        message:     Human-readable description.
        status_code: HTTP status that triggered this error (0 if unknown).
        raw:         Raw response body bytes (may be empty).
    """

    def __init__(self, message: str, status_code: int = 0, raw: bytes = b""):
        super().__init__(message)
        self.message     = message
        self.status_code = status_code
        self.raw         = raw

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, status={self.status_code})"


class STValidationError(STError):
    """
    Raised at the PostStore boundary when a server post is malformed
    (no id, non-integer id, no locale), and by PostDraft.validate() when a
    draft has empty text or a status the posting policy does not allow.

    Attributes:
        field: Name of the offending field ("id", "locale", "text", ...).

    Example:
        try:
            posts = store.parse(json_rows)
        except STValidationError as e:
            log.warning(f"Bad post from server ({e.field}): {e.message}")
    """

    def __init__(self, message: str, field: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class STCyclicThreadError(STError):
    """
    Raised when a parent walk revisits a post or runs past its hop budget.

    This is data corruption (a post is its own ancestor). ThreadResolver
    treats the affected post as a singleton thread instead of crashing the
    whole render.

    Attributes:
        post_id: The post whose walk failed.
        hops:    Number of hops taken before giving up.
    """

    def __init__(self, message: str = "Cyclic parent chain", post_id: int = 0, hops: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.post_id = post_id
        self.hops    = hops


class STStaleFetchDiscarded(STError):
    """
    A fetch response arrived after a newer fetch was issued.

    Attributes:
        generation: Generation of the discarded response.
        latest:     Generation that is currently active.
    """

    def __init__(self, message: str = "Stale fetch discarded", generation: int = 0, latest: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.generation = generation
        self.latest     = latest


class STTransportError(STError):
    """
    Raised when the request never produced a response (connect error,
    proxy error, unexpected httpx failure).
    """


class STTimeoutError(STTransportError):
    """
    Raised when a request times out.

    Attributes:
        timeout: The timeout value in seconds that was exceeded.
    """

    def __init__(self, message: str = "Survey Tool request timed out", timeout: float = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class STServerError(STError):
    """
    Raised on a non-200 response, or a 200 response whose JSON body carries
    an "err" field (SurveyAjax reports failures that way).

    Example:
        except STServerError as e:
            print(f"Survey Tool error: HTTP {e.status_code}: {e.message}")
    """


class STParseError(STError):
    """
    Raised when the response body is not JSON or lacks the "ret" list.

    Attributes:
        raw: The raw response bytes for debugging.
    """
