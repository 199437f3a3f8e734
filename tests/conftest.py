"""
Pytest fixtures for the statement engine test suite.

Provides:
- A deterministic clock and default engine configuration
- A small Dutch chart of accounts and a balanced two-year movements table
- A movement factory for ad-hoc tables
- Logging isolation between tests

No database and no file I/O (loader tests use ``tmp_path``).
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from statement_config.schema import EngineConfig
from statement_engine.registry import ReportRegistry
from statement_kernel.domain.clock import DeterministicClock
from statement_kernel.logging_config import LogContext, reset_logging

# account_code -> (statement_type, code0, name0, code1, name1, code2, name2, description)
CHART = {
    "0100": ("BS", "A", "Activa", "10", "Materiële vaste activa", "100", "Inventaris", "Inventaris"),
    "1300": ("BS", "A", "Activa", "30", "Vorderingen", "300", "Debiteuren", "Debiteuren"),
    "1100": ("BS", "A", "Activa", "40", "Liquide middelen", "400", "Bank", "Bank"),
    "0500": ("BS", "P", "Passiva", "60", "Eigen vermogen", "600", "Kapitaal", "Aandelenkapitaal"),
    "1600": ("BS", "P", "Passiva", "70", "Kortlopende schulden", "700", "Crediteuren", "Crediteuren"),
    "8000": ("IS", "R", "Resultaat", "500", "Netto-omzet", "5000", "Omzet", "Omzet"),
    "7000": ("IS", "R", "Resultaat", "510", "Kostprijs van de omzet", "5100", "Inkoop", "Inkoopwaarde"),
    "4000": ("IS", "R", "Resultaat", "520", "Bedrijfskosten", "5200", "Personeel", "Personeelskosten"),
    "4100": ("IS", "R", "Resultaat", "520", "Bedrijfskosten", "5210", "Huisvesting", "Huisvestingskosten"),
    "8800": ("IS", "R", "Resultaat", "530", "Financiële baten en lasten", "5300", "Rente", "Rentelasten"),
    "9000": ("IS", "R", "Resultaat", "550", "Belastingen", "5500", "Vpb", "Vennootschapsbelasting"),
    "9800": ("CF", "C", "Kasstroom", "800", "Operationele kasstroom", "8000", "Operationeel", "Kasstroom operationeel"),
    "9810": ("CF", "C", "Kasstroom", "810", "Investeringskasstroom", "8100", "Investeringen", "Kasstroom investeringen"),
}


def _movement(year, period, account_code, amount):
    statement_type, code0, name0, code1, name1, code2, name2, description = CHART[account_code]
    return {
        "year": year,
        "period": period,
        "account_code": account_code,
        "account_description": description,
        "statement_type": statement_type,
        "code0": code0,
        "name0": name0,
        "code1": code1,
        "name1": name1,
        "code2": code2,
        "name2": name2,
        "code3": None,
        "name3": None,
        "movement_amount": Decimal(str(amount)),
    }


# Balanced journals.  Net income: 2024 = 15,000; 2025 = 30,000.
JOURNALS = [
    # 2024
    (2024, 1, [("1100", 100000), ("0500", -100000)]),
    (2024, 3, [("0100", 30000), ("1100", -30000)]),
    (2024, 6, [("1300", 50000), ("8000", -50000)]),
    (2024, 6, [("7000", 20000), ("1600", -20000)]),
    (2024, 9, [("4000", 10000), ("1100", -10000)]),
    (2024, 12, [("8800", 1000), ("1100", -1000)]),
    (2024, 12, [("9000", 4000), ("1600", -4000)]),
    # 2025
    (2025, 2, [("1100", 50000), ("1300", -50000)]),
    (2025, 4, [("1600", 24000), ("1100", -24000)]),
    (2025, 5, [("1100", 60000), ("8000", -60000)]),
    (2025, 5, [("7000", 25000), ("1100", -25000)]),
    (2025, 6, [("4100", 5000), ("1100", -5000)]),
]


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2025, 7, 1, 9, 30, tzinfo=UTC))


@pytest.fixture
def engine_config():
    return EngineConfig()


@pytest.fixture
def registry():
    return ReportRegistry()


@pytest.fixture
def make_movement():
    """Factory: make_movement(year, period, account_code, amount) -> dict."""
    return _movement


@pytest.fixture
def ledger_movements():
    """Balanced BS/IS movements for 2024 and 2025 (latest period 2025-P06)."""
    return [
        _movement(year, period, account, amount)
        for year, period, lines in JOURNALS
        for account, amount in lines
    ]


@pytest.fixture
def cash_flow_movements(ledger_movements):
    """Ledger movements plus a few cash-flow statement rows."""
    return ledger_movements + [
        _movement(2024, 12, "9800", 59000),
        _movement(2024, 12, "9810", -30000),
        _movement(2025, 6, "9800", 56000),
    ]


@pytest.fixture
def monthly_movements():
    """One revenue booking in every month from 2024-P01 through 2025-P06."""
    rows = []
    for year, last in ((2024, 12), (2025, 6)):
        for period in range(1, last + 1):
            rows.append(_movement(year, period, "8000", -1000))
            rows.append(_movement(year, period, "1300", 1000))
    return rows
