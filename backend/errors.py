# ============================================================
# errors.py - Tool Error Taxonomy
# ============================================================
# Every failure the router, result endpoint or vision adapter can
# surface. Each carries the HTTP status it maps to; main.py turns
# them into {"error": ...} JSON bodies.
# ============================================================


class ToolError(Exception):
    """Base class for recoverable tool and endpoint failures."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ToolError):
    """A required field is missing or malformed."""
    status_code = 400


class UnknownToolError(ToolError):
    """The agent asked for a tool this service does not provide."""
    status_code = 400

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class NoSuchRequestError(ToolError):
    """Late, duplicate or unknown correlation id on delivery."""
    status_code = 404

    def __init__(self, message: str = "No pending request"):
        super().__init__(message)


class ToolTimeoutError(ToolError):
    """The capability client did not answer before the deadline."""
    status_code = 504


class UnsupportedFormatError(ToolError):
    """Image payload starts with data: but is not a base64 data URL."""
    status_code = 422


class InvalidPayloadError(ToolError):
    """Image payload is empty or not decodable base64."""
    status_code = 422


class InferenceError(ToolError):
    """The vision API rejected the request. Message holds the upstream detail."""
    status_code = 502


class TransportError(ToolError):
    """The room transport failed to deliver a command."""
    status_code = 502


class TransportNotConfiguredError(TransportError):
    status_code = 503


class DuplicateRequestError(ValueError):
    """A correlation id was registered while still pending."""
