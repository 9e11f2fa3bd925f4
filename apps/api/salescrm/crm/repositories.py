from __future__ import annotations

from salescrm.crm.models import CallLog, Prospect, Sale
from salescrm.platform.security.policies import Resource
from salescrm.platform.security.repository import BaseRepository


class ProspectRepository(BaseRepository):
    resource = Resource.PROSPECT
    model = Prospect
    label = "prospect"


class SaleRepository(BaseRepository):
    resource = Resource.SALE
    model = Sale
    label = "sale"


class CallLogRepository(BaseRepository):
    resource = Resource.CALL_LOG
    model = CallLog
    label = "call log"
