"""Visit log."""
from typing import List

from fastapi import APIRouter, Depends, status

from clinicdesk.api.deps import get_store
from clinicdesk.schemas.customer import Visit, VisitCreate
from clinicdesk.services import customer_service
from clinicdesk.services.record_store import RecordStore

router = APIRouter()


@router.get("", response_model=List[Visit])
def list_visits(store: RecordStore = Depends(get_store)):
    return customer_service.list_visits(store)


@router.post("", response_model=Visit, status_code=status.HTTP_201_CREATED)
def create_visit(data: VisitCreate, store: RecordStore = Depends(get_store)):
    return customer_service.add_visit(store, data)
