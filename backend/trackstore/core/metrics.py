"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY


def _counter(name: str, documentation: str, labels: list) -> Counter:
    # Re-importing the module (tests, reloads) must not register a collector twice
    try:
        return Counter(name, documentation, labels)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


# Checkout metrics
checkout_sessions_counter = _counter(
    'trackstore_checkout_sessions_total',
    'Total number of checkout session requests',
    ['status']
)

# Webhook metrics
webhook_events_counter = _counter(
    'trackstore_webhook_events_total',
    'Total number of payment webhook deliveries',
    ['outcome']
)

# Purchase metrics
purchases_recorded_counter = _counter(
    'trackstore_purchases_recorded_total',
    'Total number of purchase record attempts',
    ['result']
)

# Download metrics
download_urls_counter = _counter(
    'trackstore_download_urls_total',
    'Total number of signed download URL requests',
    ['status']
)
