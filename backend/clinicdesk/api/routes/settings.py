"""Shop settings plus the category and unit option lists."""
from typing import List

from fastapi import APIRouter, Depends, status

from clinicdesk.api.deps import get_store
from clinicdesk.schemas.settings import OptionCreate, SettingsUpdate, ShopSettings
from clinicdesk.services import settings_service
from clinicdesk.services.record_store import RecordStore

router = APIRouter()


@router.get("", response_model=ShopSettings)
def get_settings(store: RecordStore = Depends(get_store)):
    return settings_service.get_settings(store)


@router.patch("", response_model=ShopSettings)
def update_settings(data: SettingsUpdate, store: RecordStore = Depends(get_store)):
    return settings_service.update_settings(store, data)


@router.get("/categories", response_model=List[str])
def list_categories(store: RecordStore = Depends(get_store)):
    return settings_service.list_categories(store)


@router.post("/categories", response_model=List[str], status_code=status.HTTP_201_CREATED)
def add_category(data: OptionCreate, store: RecordStore = Depends(get_store)):
    return settings_service.add_category(store, data.name)


@router.delete("/categories/{name}", response_model=List[str])
def remove_category(name: str, store: RecordStore = Depends(get_store)):
    return settings_service.remove_category(store, name)


@router.get("/units", response_model=List[str])
def list_units(store: RecordStore = Depends(get_store)):
    return settings_service.list_units(store)


@router.post("/units", response_model=List[str], status_code=status.HTTP_201_CREATED)
def add_unit(data: OptionCreate, store: RecordStore = Depends(get_store)):
    return settings_service.add_unit(store, data.name)


@router.delete("/units/{name}", response_model=List[str])
def remove_unit(name: str, store: RecordStore = Depends(get_store)):
    return settings_service.remove_unit(store, name)
