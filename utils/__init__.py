"""Utility modules for perfwatch."""
from utils.logger import setup_logging
from utils.errors import PerfwatchError, ConfigurationError, TransportError, TelemetryError
from utils.http_client import HTTPClient, APIError
