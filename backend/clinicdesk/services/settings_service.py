"""Shop settings and the category/unit option lists."""
import logging
from typing import List

import pydantic

from clinicdesk.core.exceptions import ValidationError
from clinicdesk.schemas.settings import ShopSettings, SettingsUpdate
from clinicdesk.services.record_store import RecordStore, SETTINGS, CATEGORIES, UNITS

logger = logging.getLogger(__name__)


def get_settings(store: RecordStore) -> ShopSettings:
    return ShopSettings.model_validate(store.get(SETTINGS))


def update_settings(store: RecordStore, data: SettingsUpdate) -> ShopSettings:
    patch = data.model_dump(mode="json", exclude_unset=True)
    with store.transaction():
        # Validate the merged result first so a bad field leaves settings untouched
        try:
            updated = ShopSettings.model_validate({**store.get(SETTINGS), **patch})
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid settings: {e}") from e
        store.put(SETTINGS, updated.model_dump(mode="json"))
    logger.info(f"[SETTINGS] Updated fields: {sorted(patch)}")
    return updated


def _add_option(store: RecordStore, collection: str, name: str) -> List[str]:
    name = name.strip()
    if not name:
        raise ValidationError(f"{collection[:-1].capitalize()} name cannot be empty")
    with store.transaction():
        options = store.get(collection)
        if name not in options:
            options.append(name)
            store.put(collection, options)
    return options


def _remove_option(store: RecordStore, collection: str, name: str) -> List[str]:
    with store.transaction():
        options = [o for o in store.get(collection) if o != name]
        store.put(collection, options)
    return options


def list_categories(store: RecordStore) -> List[str]:
    return store.get(CATEGORIES)


def add_category(store: RecordStore, name: str) -> List[str]:
    return _add_option(store, CATEGORIES, name)


def remove_category(store: RecordStore, name: str) -> List[str]:
    return _remove_option(store, CATEGORIES, name)


def list_units(store: RecordStore) -> List[str]:
    return store.get(UNITS)


def add_unit(store: RecordStore, name: str) -> List[str]:
    return _add_option(store, UNITS, name)


def remove_unit(store: RecordStore, name: str) -> List[str]:
    return _remove_option(store, UNITS, name)
