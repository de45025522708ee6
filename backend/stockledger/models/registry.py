"""Import every model so ``Base.metadata`` knows the whole schema."""
from stockledger.models.tenant import Tenant  # noqa: F401
from stockledger.models.user import User  # noqa: F401
from stockledger.models.product import Category, Product  # noqa: F401
from stockledger.models.supplier import Supplier  # noqa: F401
from stockledger.models.customer import Customer  # noqa: F401
from stockledger.models.location import Location  # noqa: F401
from stockledger.models.batch import Batch, StockMovement  # noqa: F401
from stockledger.models.sale import Sale, SaleItem  # noqa: F401
from stockledger.models.activity_log import ActivityLog  # noqa: F401
from stockledger.models.purchase_order import PurchaseOrder, PurchaseOrderItem  # noqa: F401
from stockledger.models.tag import Tag, product_tags  # noqa: F401
