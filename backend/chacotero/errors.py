"""
Error taxonomy for the call separation and similarity pipeline.

- ConfigurationError: missing API keys or malformed prompt templates (fatal)
- LLMConnectionError: network failures talking to the chat-completion API,
  raised once the retry budget is exhausted
- LLMRequestError: the chat-completion API rejected a request (rate limit,
  malformed request); not retried
- EmbeddingError: the embedding provider answered without a usable vector
- ValidationError: call metadata that cannot be processed (e.g. no summary)
- ParseError: model output that could not be turned into JSON
- BoundaryError: a candidate call whose timestamps fall outside the timeline
- NotFoundError: a call record that does not exist in the store
"""


class ChacoteroError(Exception):
    """Base class for all pipeline errors"""


class ConfigurationError(ChacoteroError):
    """Required configuration is absent or malformed"""


class LLMConnectionError(ChacoteroError, ConnectionError):
    """The chat-completion API could not be reached after retrying"""


class LLMRequestError(ChacoteroError):
    """The chat-completion API refused the request for a non-network reason"""


class EmbeddingError(ChacoteroError):
    """The embedding provider returned no usable vector"""


class ValidationError(ChacoteroError, ValueError):
    """Input metadata is structurally unusable"""


class ParseError(ChacoteroError, ValueError):
    """Model output could not be parsed as JSON"""


class BoundaryError(ChacoteroError, ValueError):
    """A candidate call has invalid or out-of-range timestamps"""


class NotFoundError(ChacoteroError, LookupError):
    """A referenced call record does not exist"""
