"""
Customers and suppliers.

Thin wrappers over the counterpart tables. The only rules are
that a counterpart's identity is unique per kind and that a
sub-ledger account, when given, exists and is active.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from retail_ledger.actor import ActorContext
from retail_ledger.exceptions import InactiveAccountError, NotFoundError, RetailLedgerError
from retail_ledger.models.party import Customer, Supplier
from retail_ledger.schemas.account import CounterpartCreate
from retail_ledger.services.account_directory import AccountDirectory


class PartyService:

    def __init__(self, db: Session):
        self.db = db
        self.directory = AccountDirectory(db)

    def _create(self, model, request: CounterpartCreate, actor: ActorContext):
        existing = self.db.execute(
            select(model).where(
                model.identity_kind == request.identity.kind,
                model.identity_id == request.identity.id,
            )
        ).scalar_one_or_none()
        if existing:
            raise RetailLedgerError(
                f"{model.__name__} for {request.identity.kind.value} "
                f"{request.identity.id} already exists"
            )

        if request.account_id is not None:
            account = self.directory.get_account(request.account_id)
            if not account.is_active:
                raise InactiveAccountError(account.code)

        party = model(
            identity_kind=request.identity.kind,
            identity_id=request.identity.id,
            account_id=request.account_id,
            created_by_id=actor.user_id,
        )
        self.db.add(party)
        self.db.flush()
        return party

    def create_customer(self, request: CounterpartCreate, actor: ActorContext) -> Customer:
        return self._create(Customer, request, actor)

    def create_supplier(self, request: CounterpartCreate, actor: ActorContext) -> Supplier:
        return self._create(Supplier, request, actor)

    def get_customer(self, customer_id: int) -> Customer:
        customer = self.db.get(Customer, customer_id)
        if not customer or not customer.is_active:
            raise NotFoundError("Customer", customer_id)
        return customer

    def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.db.get(Supplier, supplier_id)
        if not supplier or not supplier.is_active:
            raise NotFoundError("Supplier", supplier_id)
        return supplier
