"""
Core business logic components.

This package contains the log shipping pipeline:
- Entry building and the benign error filter
- Rate limiting and duplicate throttling
- Batching server logger with endpoint provisioning
- Host and HTTP transport boundaries
- Metrics collection
"""
