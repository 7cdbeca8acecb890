# Import every model so Base.metadata is complete for create_all / alembic.
from procurement.models.process import PurchaseProcess  # noqa: F401
from procurement.models.selection import Selection  # noqa: F401
from procurement.models.selection_item import SelectionItem  # noqa: F401
from procurement.models.bid import Bid  # noqa: F401
from procurement.models.disqualification import Disqualification  # noqa: F401
from procurement.models.item_bidding_control import ItemBiddingControl  # noqa: F401
from procurement.models.audit_log import AuditLog  # noqa: F401
