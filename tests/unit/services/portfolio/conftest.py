"""Fixtures for portfolio service tests."""

import pytest

from pnlengine.services.portfolio.service import PortfolioService
from pnlengine.system.config import AccountingConfig


@pytest.fixture
def service() -> PortfolioService:
    """Portfolio service with default accounting settings."""
    return PortfolioService(AccountingConfig())
