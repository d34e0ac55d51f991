"""Shared fixtures: a small chart of accounts, deals and a seeded in-memory ledger."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_recon.config import ReconConfig, ReviewStateConfig
from ledger_recon.models.accounts import (
    Account,
    AccountType,
    ChartOfAccounts,
    Installer,
    Job,
    Purpose,
    RealEstateDeal,
    Vendor,
)
from ledger_recon.posting.builder import PostingLineBuilder
from ledger_recon.store.ledger_store import InMemoryLedgerStore

CHECKING = 1
VISA = 2
MEALS = 3
INCOME = 4
REHAB_LABOR = 5
REHAB_MATERIALS = 6
REHAB_SERVICES = 7
CLOSING_COSTS = 8
HOLDING_COSTS = 9
HARD_MONEY_INTEREST = 10
GAIN_ON_SALE = 11
RENTAL_TAXES_INSURANCE = 12
RENTAL_MORTGAGE_INTEREST = 13
MAPLE_ASSET = 14
MAPLE_LOAN = 15
PERSONAL_TAXES_INSURANCE = 16
PERSONAL_MORTGAGE_INTEREST = 17
SUPPLIES = 18
OAK_LOAN = 19


@pytest.fixture
def accounts():
    return [
        Account(CHECKING, "1010", "Checking", AccountType.ASSET),
        Account(VISA, "2100", "Visa Card", AccountType.LIABILITY),
        Account(MEALS, "5100", "Meals", AccountType.EXPENSE),
        Account(INCOME, "4100", "Consulting Income", AccountType.INCOME),
        Account(REHAB_LABOR, "62021", "Rehab Labor", AccountType.EXPENSE),
        Account(REHAB_MATERIALS, "62022", "Rehab Materials", AccountType.EXPENSE),
        Account(REHAB_SERVICES, "62023", "Rehab Services", AccountType.EXPENSE),
        Account(CLOSING_COSTS, "62024", "Closing Costs", AccountType.EXPENSE),
        Account(HOLDING_COSTS, "62025", "Holding Costs", AccountType.EXPENSE),
        Account(HARD_MONEY_INTEREST, "62026", "Hard Money Interest", AccountType.EXPENSE),
        Account(GAIN_ON_SALE, "41500", "Gain on Sale", AccountType.INCOME),
        Account(RENTAL_TAXES_INSURANCE, "62011", "Rental Taxes & Insurance", AccountType.EXPENSE),
        Account(RENTAL_MORTGAGE_INTEREST, "62012", "Rental Mortgage Interest", AccountType.EXPENSE),
        Account(MAPLE_ASSET, "63001", "Maple St Property", AccountType.ASSET),
        Account(MAPLE_LOAN, "64001", "Maple St Loan", AccountType.LIABILITY),
        Account(
            PERSONAL_TAXES_INSURANCE,
            "69011",
            "Home Taxes & Insurance",
            AccountType.EXPENSE,
            Purpose.PERSONAL,
        ),
        Account(
            PERSONAL_MORTGAGE_INTEREST,
            "69012",
            "Home Mortgage Interest",
            AccountType.EXPENSE,
            Purpose.PERSONAL,
        ),
        Account(SUPPLIES, "5200", "Supplies", AccountType.EXPENSE),
        Account(OAK_LOAN, "64002", "Oak Ave Mortgage", AccountType.LIABILITY),
    ]


@pytest.fixture
def chart(accounts):
    return ChartOfAccounts(accounts)


@pytest.fixture
def flip_deal():
    return RealEstateDeal(
        id=1,
        nickname="Maple St",
        type="flip",
        asset_account_id=MAPLE_ASSET,
        loan_account_id=MAPLE_LOAN,
    )


@pytest.fixture
def rental_deal():
    return RealEstateDeal(
        id=2,
        nickname="Oak Ave",
        type="rental",
        loan_account_id=OAK_LOAN,
        original_loan_amount=Decimal("200000"),
        interest_rate=Decimal("6"),
        loan_term_months=360,
        first_payment_date=date(2024, 2, 1),
    )


@pytest.fixture
def personal_deal():
    return RealEstateDeal(id=3, nickname="Home", type="personal", loan_account_id=OAK_LOAN)


@pytest.fixture
def config(tmp_path):
    return ReconConfig(
        review_state=ReviewStateConfig(path=str(tmp_path / "state" / "review_state.json"))
    )


@pytest.fixture
def store(accounts, flip_deal, rental_deal, personal_deal):
    return InMemoryLedgerStore(
        accounts,
        vendors=[Vendor(1, "Home Depot"), Vendor(2, "Shell"), Vendor(3, "Old Vendor", False)],
        jobs=[Job(1, "Maple St Rehab"), Job(2, "Finished Job", status="closed")],
        installers=[Installer(1, "Joe's Tile")],
        deals=[flip_deal, rental_deal, personal_deal],
    )


@pytest.fixture
def builder(store, config):
    return PostingLineBuilder(store.chart_of_accounts(), config, store)


@pytest.fixture
def seeded_store(store, builder):
    """
    Store with one pending dinner charge (transaction 1, lines 1-2) and one
    cleared Home Depot purchase (transaction 2, lines 3-4) on checking.
    """
    store.create_transaction(
        builder.build_new_transaction(
            date(2025, 6, 1), "MARIETTA DINER", Decimal("-45.37"), CHECKING, MEALS
        )
    )
    store.create_transaction(
        builder.build_new_transaction(
            date(2025, 5, 20),
            "HOME DEPOT #123",
            Decimal("-120.00"),
            CHECKING,
            SUPPLIES,
            vendor_id=1,
            job_id=1,
            is_cleared=True,
        )
    )
    return store
