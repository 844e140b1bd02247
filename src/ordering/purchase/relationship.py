"""Purchase relationships: which products were bought together.

One record per completed payment transaction, written once and consumed
by downstream co-purchase analytics. Product names come from the order's
line-item snapshot; ids missing from the snapshot are looked up through
the product service and skipped when no name can be found.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering

logger = structlog.get_logger(__name__)


@ordering.aggregate
class PurchaseRelationship:
    transaction_id = Identifier(identifier=True)
    product_names = Text()  # JSON array of product names
    purchased_at = DateTime()

    @property
    def names(self) -> list[str]:
        return json.loads(self.product_names) if self.product_names else []


@ordering.repository(part_of=PurchaseRelationship)
class PurchaseRelationshipRepository:
    def find_relationship(self, transaction_id) -> PurchaseRelationship | None:
        try:
            return self.get(str(transaction_id))
        except ObjectNotFoundError:
            return None

    def between(self, start: datetime, end: datetime) -> list[PurchaseRelationship]:
        """Relationships recorded in ``[start, end]``, oldest first."""
        found = self._dao.query.filter(purchased_at__gte=start, purchased_at__lte=end).all().items
        return sorted(found, key=lambda relationship: relationship.purchased_at)


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------
@ordering.command(part_of="PurchaseRelationship")
class RecordPurchase:
    transaction_id = Identifier(required=True)
    product_names = Text(required=True)  # JSON array of product names


@ordering.command_handler(part_of=PurchaseRelationship)
class PurchaseRelationshipHandler:
    @handle(RecordPurchase)
    def record_purchase(self, command):
        """Record the products purchased together; the first record for a transaction wins."""
        repo = current_domain.repository_for(PurchaseRelationship)
        existing = repo.find_relationship(command.transaction_id)
        if existing is not None:
            logger.info("Purchase relationship already recorded", transaction_id=str(command.transaction_id))
            return str(existing.transaction_id)

        names = json.loads(command.product_names) if isinstance(command.product_names, str) else command.product_names
        relationship = PurchaseRelationship(
            transaction_id=command.transaction_id,
            product_names=json.dumps(names),
            purchased_at=datetime.now(UTC),
        )
        repo.add(relationship)
        logger.info("Recorded purchase relationship", transaction_id=str(command.transaction_id), product_count=len(names))
        return str(relationship.transaction_id)


def product_names_for(items, products=None) -> list[str]:
    """Names of ``items`` from the snapshot, falling back to the product service."""
    names = []
    for item in items:
        name = item.name or (products.product_name(item.product_id) if products is not None else None)
        if name:
            names.append(name)
    return names
