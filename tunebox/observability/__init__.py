# noqa: D104 - package initialization
from .logging import configure_structured_logging  # noqa: F401
from .metrics import metrics_blueprint, record_fallback, record_upstream_request, record_upstream_retry  # noqa: F401
