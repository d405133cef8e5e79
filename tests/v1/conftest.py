# tests/v1/conftest.py
import pytest

from botcipher.services.status import TransactionStatusChannel


@pytest.fixture()
def status_channel() -> TransactionStatusChannel:
    """Keep notifications visible for the duration of an HTTP round trip."""
    return TransactionStatusChannel(success_clear_seconds=30.0, error_clear_seconds=30.0)
