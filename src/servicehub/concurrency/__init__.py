from .retry import RetryPolicy, backoff_delay, retry_with_exponential_backoff
from .single_flight import SingleFlight
from .timeout import TimeoutError, with_timeout

__all__ = [
    "RetryPolicy",
    "SingleFlight",
    "TimeoutError",
    "backoff_delay",
    "retry_with_exponential_backoff",
    "with_timeout",
]
