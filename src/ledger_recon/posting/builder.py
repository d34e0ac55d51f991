"""
Posting line builder.

One method per transaction archetype. Every method returns a validated
Posting whose lines net to zero; an unbalanced result raises
UnbalancedPostingError before anything reaches the ledger store.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
import logging

from ..config import ReconConfig
from ..models.accounts import Account, ChartOfAccounts, Purpose, RealEstateDeal
from ..models.transaction import ZERO, Posting, PostingLine, to_cents
from ..utils.exceptions import SplitToleranceError, ValidationError

logger = logging.getLogger(__name__)


class RehabCostType(Enum):
    """Cost-type code stamped on rehab lines; selects the expense account."""

    LABOR = "L"
    MATERIAL = "M"
    SERVICE = "S"
    INTEREST = "I"
    HOLDING = "H"


def scale_amounts(
    amounts: list[tuple[int, Decimal]],
    factor: Decimal,
    anchor_line_id: Optional[int] = None,
) -> dict[int, Decimal]:
    """
    Scale line amounts by a positive factor, keeping the set balanced.

    Each scaled amount is rounded to cents. Any rounding residual goes to the
    largest-magnitude line other than the anchor, so the anchor (the cash
    line matched to the bank amount) keeps its exactly scaled value.

    Args:
        amounts: (line id, amount) pairs of one transaction
        factor: Positive scale factor
        anchor_line_id: Line that must not absorb the residual

    Returns:
        Mapping of line id to scaled amount
    """
    scaled = {line_id: to_cents(amount * factor) for line_id, amount in amounts}
    residual = sum(scaled.values(), ZERO)
    if residual != ZERO and scaled:
        others = [lid for lid in scaled if lid != anchor_line_id] or list(scaled)
        target = max(others, key=lambda lid: abs(scaled[lid]))
        scaled[target] -= residual
    return scaled


class PostingLineBuilder:
    """Builds balanced postings for each supported archetype."""

    def __init__(
        self,
        chart: ChartOfAccounts,
        config: Optional[ReconConfig] = None,
        store=None,
    ):
        """
        Initialize the builder.

        Args:
            chart: Chart of accounts used to resolve ids and codes
            config: Application configuration (defaults when omitted)
            store: Ledger store, needed for archetypes that read live balances
        """
        self.chart = chart
        self.config = config or ReconConfig()
        self.store = store
        self.tolerance = self.config.posting.balance_tolerance

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _account(self, account_id: Optional[int], label: str) -> Account:
        if account_id is None:
            raise ValidationError(f"{label} is required")
        account = self.chart.get(account_id)
        if account is None:
            raise ValidationError(f"{label} {account_id} does not exist")
        return account

    def _account_by_code(self, code: str, label: str) -> Account:
        account = self.chart.by_code(code)
        if account is None:
            raise ValidationError(f"Could not find {label} account (code {code})")
        return account

    @staticmethod
    def _positive(amount, label: str) -> Decimal:
        if amount is None:
            raise ValidationError(f"{label} is required")
        value = to_cents(amount)
        if value <= ZERO:
            raise ValidationError(f"{label} must be greater than zero")
        return value

    @staticmethod
    def _optional_amount(amount, label: str) -> Decimal:
        if amount is None:
            return ZERO
        value = to_cents(amount)
        if value < ZERO:
            raise ValidationError(f"{label} cannot be negative")
        return value

    def _finish(self, posting: Posting) -> Posting:
        posting.validate(self.tolerance)
        logger.debug(
            f"Built posting '{posting.description}' on {posting.date} "
            f"with {len(posting.lines)} lines"
        )
        return posting

    # ------------------------------------------------------------------
    # Reconciliation archetypes
    # ------------------------------------------------------------------

    @staticmethod
    def tip_scale_factor(new_amount: Decimal, original_amount: Decimal) -> Decimal:
        """
        Uniform scale factor for a tip adjustment, from absolute values.

        Raises:
            ValidationError: If the original amount is zero
        """
        if to_cents(original_amount) == ZERO:
            raise ValidationError("Cannot scale a transaction with a zero original amount")
        return abs(to_cents(new_amount)) / abs(to_cents(original_amount))

    def build_new_transaction(
        self,
        txn_date: date,
        description: str,
        amount: Decimal,
        cash_account_id: int,
        category_account_id: Optional[int],
        vendor_id: Optional[int] = None,
        job_id: Optional[int] = None,
        installer_id: Optional[int] = None,
        purpose: Optional[Purpose] = None,
        is_cleared: bool = False,
    ) -> Posting:
        """
        Standard two-line income or expense.

        ``amount`` is signed from the cash account's side: negative is money
        out (expense, or a card charge), positive is money in. The category
        line takes the opposite sign and carries the vendor/job/installer
        links; the cash line carries none.

        Raises:
            ValidationError: If the category account is missing or the amount is zero
        """
        amount = to_cents(amount)
        if amount == ZERO:
            raise ValidationError("Amount is required")
        cash = self._account(cash_account_id, "Cash account")
        category = self._account(category_account_id, "Category account")
        purpose = purpose or category.default_purpose

        lines = [
            PostingLine(
                account_id=cash.id,
                amount=amount,
                purpose=purpose,
                is_cleared=is_cleared,
            ),
            PostingLine(
                account_id=category.id,
                amount=-amount,
                purpose=purpose,
                is_cleared=is_cleared,
                job_id=job_id,
                vendor_id=vendor_id,
                installer_id=installer_id,
            ),
        ]
        return self._finish(Posting(txn_date, description, lines))

    def build_card_payment(
        self,
        txn_date: date,
        amount: Decimal,
        bank_account_id: int,
        card_account_id: int,
        description: Optional[str] = None,
        is_cleared: bool = False,
    ) -> Posting:
        """Pay a credit card from a bank account: credit bank, debit card."""
        amt = self._positive(amount, "Amount")
        bank = self._account(bank_account_id, "Bank account")
        card = self._account(card_account_id, "Card account")
        if not card.is_credit_card:
            raise ValidationError(f"Account {card.code} is not a credit card account")

        lines = [
            PostingLine(account_id=bank.id, amount=-amt, is_cleared=is_cleared),
            PostingLine(account_id=card.id, amount=amt, is_cleared=is_cleared),
        ]
        return self._finish(
            Posting(txn_date, description or f"Payment to {card.name}", lines)
        )

    # ------------------------------------------------------------------
    # Flip archetypes
    # ------------------------------------------------------------------

    def build_flip_acquisition(
        self,
        txn_date: date,
        deal: RealEstateDeal,
        cash_account_id: int,
        purchase_price: Decimal,
        closing_costs: Optional[Decimal] = None,
        loan_amount: Optional[Decimal] = None,
        description: Optional[str] = None,
        is_cleared: bool = False,
    ) -> Posting:
        """
        Purchase of a flip property.

        Debits the asset for the purchase price and closing costs to expense,
        credits the loan for the financed amount, and credits cash for the
        cash to close (``purchase + closing - loan``), omitted when zero.
        """
        purchase = self._positive(purchase_price, "Purchase amount")
        closing = self._optional_amount(closing_costs, "Closing costs")
        loan = self._optional_amount(loan_amount, "Loan amount")
        cash = self._account(cash_account_id, "Cash account")
        asset = self._account(deal.asset_account_id, "Deal asset account")

        def line(account_id: int, amount: Decimal) -> PostingLine:
            return PostingLine(
                account_id=account_id,
                amount=amount,
                is_cleared=is_cleared,
                real_estate_deal_id=deal.id,
            )

        lines = [line(asset.id, purchase)]
        if closing > ZERO:
            closing_account = self._account_by_code(
                self.config.account_codes.flip_closing_costs, "closing costs"
            )
            lines.append(line(closing_account.id, closing))
        if loan > ZERO:
            loan_account = self._account(deal.loan_account_id, "Deal loan account")
            lines.append(line(loan_account.id, -loan))

        cash_to_close = purchase + closing - loan
        if cash_to_close != ZERO:
            lines.append(line(cash.id, -cash_to_close))

        return self._finish(
            Posting(txn_date, description or f"Acquisition - {deal.nickname}", lines)
        )

    def build_flip_sale(
        self,
        txn_date: date,
        deal: RealEstateDeal,
        cash_account_id: int,
        sale_price: Decimal,
        selling_costs: Optional[Decimal] = None,
        description: Optional[str] = None,
        is_cleared: bool = False,
    ) -> Posting:
        """
        Sale of a flip property.

        The loan payoff and the asset's cost basis are read live from the
        ledger store. Cash receives ``sale - costs - loan payoff``; the loan
        is zeroed, selling costs are expensed and the asset is credited for
        its full balance. The remaining difference is the gain (credit) or
        loss (debit) on sale.

        Raises:
            ValidationError: If the deal lacks accounts or no store is attached
        """
        if self.store is None:
            raise ValidationError("Flip sale needs a ledger store to read balances")
        sale = self._positive(sale_price, "Sale price")
        costs = self._optional_amount(selling_costs, "Selling costs")
        cash = self._account(cash_account_id, "Cash account")
        asset = self._account(deal.asset_account_id, "Deal asset account")
        loan = self._account(deal.loan_account_id, "Deal loan account")

        asset_balance = to_cents(self.store.account_balance(asset.id))
        loan_balance = abs(to_cents(self.store.account_balance(loan.id)))
        net_proceeds = sale - costs - loan_balance
        logger.info(
            f"Sale of {deal.nickname}: asset basis {asset_balance}, loan payoff "
            f"{loan_balance}, net proceeds {net_proceeds}"
        )

        def line(account_id: int, amount: Decimal) -> PostingLine:
            return PostingLine(
                account_id=account_id,
                amount=amount,
                is_cleared=is_cleared,
                real_estate_deal_id=deal.id,
            )

        lines = []
        if net_proceeds != ZERO:
            lines.append(line(cash.id, net_proceeds))
        if loan_balance > ZERO:
            lines.append(line(loan.id, loan_balance))
        if costs > ZERO:
            closing_account = self._account_by_code(
                self.config.account_codes.flip_closing_costs, "closing costs"
            )
            lines.append(line(closing_account.id, costs))
        if asset_balance != ZERO:
            lines.append(line(asset.id, -asset_balance))

        gain = sum((ln.amount for ln in lines), ZERO)
        if gain != ZERO:
            gain_account = self._account_by_code(
                self.config.account_codes.flip_gain_on_sale, "gain on sale"
            )
            lines.append(line(gain_account.id, -gain))

        return self._finish(
            Posting(txn_date, description or f"Sale - {deal.nickname}", lines)
        )

    def build_rehab_expense(
        self,
        txn_date: date,
        deal: RealEstateDeal,
        cash_account_id: int,
        amount: Decimal,
        cost_type: RehabCostType,
        rehab_category_id: Optional[int] = None,
        vendor_id: Optional[int] = None,
        installer_id: Optional[int] = None,
        description: Optional[str] = None,
        is_cleared: bool = False,
    ) -> Posting:
        """
        Rehab labor, material, service, interest or holding cost.

        Both lines carry the deal, rehab category and cost-type code; the
        vendor/installer links go on the expense line only.

        Raises:
            ValidationError: If labor has no installer or labor/material/service
                has no rehab category
        """
        amt = self._positive(amount, "Amount")
        cash = self._account(cash_account_id, "Pay from account")
        codes = self.config.account_codes
        account_codes = {
            RehabCostType.LABOR: codes.flip_rehab_labor,
            RehabCostType.MATERIAL: codes.flip_rehab_materials,
            RehabCostType.SERVICE: codes.flip_services,
            RehabCostType.INTEREST: codes.flip_interest,
            RehabCostType.HOLDING: codes.flip_holding_costs,
        }
        label = cost_type.name.lower()

        if cost_type in (RehabCostType.LABOR, RehabCostType.MATERIAL, RehabCostType.SERVICE):
            if rehab_category_id is None:
                raise ValidationError("Rehab category is required")
        if cost_type is RehabCostType.LABOR and installer_id is None:
            raise ValidationError("Installer is required for labor expenses")

        expense = self._account_by_code(account_codes[cost_type], label)
        common = dict(
            is_cleared=is_cleared,
            real_estate_deal_id=deal.id,
            rehab_category_id=rehab_category_id,
            cost_type=cost_type.value,
        )
        lines = [
            PostingLine(
                account_id=expense.id,
                amount=amt,
                vendor_id=vendor_id,
                installer_id=installer_id,
                **common,
            ),
            PostingLine(account_id=cash.id, amount=-amt, **common),
        ]

        if cost_type is RehabCostType.INTEREST:
            default_description = f"Hard Money Interest - {deal.nickname}"
        else:
            default_description = f"Rehab {label} - {deal.nickname}"
        return self._finish(Posting(txn_date, description or default_description, lines))

    def build_rehab_refund(
        self,
        txn_date: date,
        deal: RealEstateDeal,
        cash_account_id: int,
        amount: Decimal,
        rehab_category_id: Optional[int],
        category_account_id: Optional[int] = None,
        description: Optional[str] = None,
        is_cleared: bool = False,
    ) -> Posting:
        """Refund on rehab spend: debit cash, credit materials (or the given account)."""
        amt = self._positive(amount, "Amount")
        if rehab_category_id is None:
            raise ValidationError("Rehab category is required")
        cash = self._account(cash_account_id, "Deposit to account")
        if category_account_id is not None:
            expense = self._account(category_account_id, "Category account")
        else:
            expense = self._account_by_code(
                self.config.account_codes.flip_rehab_materials, "materials"
            )

        lines = [
            PostingLine(
                account_id=account_id,
                amount=value,
                is_cleared=is_cleared,
                real_estate_deal_id=deal.id,
                rehab_category_id=rehab_category_id,
            )
            for account_id, value in ((cash.id, amt), (expense.id, -amt))
        ]
        return self._finish(
            Posting(txn_date, description or f"Refund - {deal.nickname}", lines)
        )

    def build_loan_draw(
        self,
        txn_date: date,
        deal: RealEstateDeal,
        cash_account_id: int,
        amount: Decimal,
        description: Optional[str] = None,
        is_cleared: bool = False,
    ) -> Posting:
        """Draw from the deal's loan holdback: debit cash, credit loan."""
        amt = self._positive(amount, "Amount")
        cash = self._account(cash_account_id, "Deposit to account")
        loan = self._account(deal.loan_account_id, "Deal loan account")

        lines = [
            PostingLine(
                account_id=account_id,
                amount=value,
                is_cleared=is_cleared,
                real_estate_deal_id=deal.id,
            )
            for account_id, value in ((cash.id, amt), (loan.id, -amt))
        ]
        return self._finish(
            Posting(txn_date, description or f"Loan Draw - {deal.nickname}", lines)
        )

    # ------------------------------------------------------------------
    # Mortgage
    # ------------------------------------------------------------------

    def build_mortgage_payment(
        self,
        txn_date: date,
        deal: RealEstateDeal,
        cash_account_id: int,
        total: Decimal,
        principal: Decimal,
        interest: Decimal,
        escrow: Decimal,
        description: Optional[str] = None,
        is_cleared: bool = False,
    ) -> Posting:
        """
        Mortgage PITI split.

        One credit to cash for the full payment and one debit each for
        principal (loan account), interest and escrow, each only when greater
        than zero. The components must reconcile to the total within the
        split tolerance; a cent-level residual inside the tolerance is
        absorbed by principal (or the largest component without principal).

        Args:
            txn_date: Payment date
            deal: Rental or personal deal the mortgage belongs to
            cash_account_id: Account the payment is made from
            total: Full payment amount
            principal: Principal portion
            interest: Interest portion
            escrow: Taxes plus insurance

        Returns:
            Validated Posting

        Raises:
            SplitToleranceError: If the components miss the total by more than the tolerance
            ValidationError: If a component is negative or accounts are missing
        """
        total = self._positive(total, "Total payment")
        components = {
            "principal": self._optional_amount(principal, "Principal"),
            "interest": self._optional_amount(interest, "Interest"),
            "escrow": self._optional_amount(escrow, "Escrow"),
        }
        difference = total - sum(components.values(), ZERO)
        if abs(difference) > self.config.posting.split_tolerance:
            raise SplitToleranceError(
                f"Split components sum to {total - difference}, which differs from "
                f"the payment {total} by {difference}"
            )
        if difference != ZERO:
            target = "principal"
            if components["principal"] == ZERO:
                target = max(components, key=lambda k: components[k])
            components[target] += difference
            logger.debug(f"Absorbed split residual {difference} into {target}")

        cash = self._account(cash_account_id, "Cash account")
        loan = self._account(deal.loan_account_id, "Deal loan account")
        codes = self.config.account_codes
        if deal.is_personal:
            interest_code = codes.personal_mortgage_interest
            escrow_code = codes.personal_taxes_insurance
            purpose = Purpose.PERSONAL
        else:
            interest_code = codes.rental_mortgage_interest
            escrow_code = codes.rental_taxes_insurance
            purpose = Purpose.BUSINESS

        targets = {"principal": loan.id}
        if components["interest"] > ZERO:
            targets["interest"] = self._account_by_code(interest_code, "mortgage interest").id
        if components["escrow"] > ZERO:
            targets["escrow"] = self._account_by_code(escrow_code, "taxes & insurance").id

        def line(account_id: int, amount: Decimal) -> PostingLine:
            return PostingLine(
                account_id=account_id,
                amount=amount,
                purpose=purpose,
                is_cleared=is_cleared,
                real_estate_deal_id=deal.id,
            )

        lines = [line(cash.id, -total)]
        for name in ("principal", "interest", "escrow"):
            if components[name] > ZERO:
                lines.append(line(targets[name], components[name]))

        return self._finish(
            Posting(txn_date, description or f"Mortgage payment - {deal.nickname}", lines)
        )
