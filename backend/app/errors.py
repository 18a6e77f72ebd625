class AnalyzerError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(AnalyzerError):
    status_code = 500


class ChannelResolutionError(AnalyzerError):
    """Raised when a channel input matches no upstream record or has no uploads list."""

    status_code = 404

    def __init__(self, message: str, channel_input: str | None = None):
        super().__init__(message)
        self.channel_input = channel_input


class UpstreamError(AnalyzerError):
    status_code = 502


class QuotaExceededError(UpstreamError):
    status_code = 429
