class SearchSinkError(RuntimeError):
    def __init__(self, message=None):
        super().__init__(message)


# Bytes that self-declare as structured content but fail to parse, or that cannot be decoded at all.
# Always fatal to the enclosing event.
class TranscodeError(SearchSinkError):
    def __init__(self, field_name: str, message=None):
        self.field_name = field_name
        super().__init__(message or f"Unable to render field [{field_name}]")


# The index request itself failed: connectivity, rejected document, non-2xx response.
class SubmissionError(SearchSinkError):
    pass


# Alias registration failed after the document was written. Logged only.
class AliasError(SearchSinkError):
    pass


class ClusterConnectionError(SearchSinkError):
    pass


class SinkNotStartedError(SearchSinkError):
    def __init__(self):
        super().__init__("Unable to index events before the sink has been started")
