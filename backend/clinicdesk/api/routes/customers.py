"""Customers and their visit history."""
from typing import List

from fastapi import APIRouter, Depends, Query, status

from clinicdesk.api.deps import get_store
from clinicdesk.schemas.customer import Customer, CustomerCreate, CustomerType, CustomerUpdate, Visit
from clinicdesk.services import customer_service
from clinicdesk.services.record_store import RecordStore

router = APIRouter()


@router.get("", response_model=List[Customer])
def list_customers(
    search: str | None = Query(None),
    type: CustomerType | None = Query(None),
    store: RecordStore = Depends(get_store),
):
    return customer_service.search_customers(store, search, type)


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
def create_customer(data: CustomerCreate, store: RecordStore = Depends(get_store)):
    return customer_service.add_customer(store, data)


@router.get("/{customer_id}", response_model=Customer)
def get_customer(customer_id: str, store: RecordStore = Depends(get_store)):
    return customer_service.get_customer(store, customer_id)


@router.patch("/{customer_id}", response_model=Customer)
def update_customer(customer_id: str, data: CustomerUpdate, store: RecordStore = Depends(get_store)):
    return customer_service.update_customer(store, customer_id, data)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(customer_id: str, store: RecordStore = Depends(get_store)):
    customer_service.delete_customer(store, customer_id)


@router.get("/{customer_id}/visits", response_model=List[Visit])
def list_customer_visits(customer_id: str, store: RecordStore = Depends(get_store)):
    customer_service.get_customer(store, customer_id)
    return customer_service.customer_visits(store, customer_id)
