"""
Remote Sync Adapter: subscription checks and Firebase Realtime Database mirroring.

Two remote databases are involved, both spoken to over the Realtime Database
REST API ({database_url}/{path}.json):

  admin database   clinics/{clinic_id}               subscription record
  clinic database  clinics/{clinic_id}/{collection}  mirrored local data

The clinic database is configured at runtime (test_config) and cached in the
Record Store. Push and pull overwrite whole collections; the last writer wins.
"""
import logging
from datetime import datetime, timezone

import pydantic
import requests

from clinicdesk.core.config import settings
from clinicdesk.core.exceptions import RemoteConfigInvalid, RemoteSyncFailed, SubscriptionCheckFailed
from clinicdesk.schemas.sync import ConnectionStatus, FirebaseConfig, SubscriptionRecord, SubscriptionStatus
from clinicdesk.services.record_store import RecordStore, ENTITY_COLLECTIONS, SETTINGS, generate_id

logger = logging.getLogger(__name__)

CLINIC_ID_KEY = "clinic_id"
CLINIC_CONFIG_KEY = "clinic_firebase_config"
REQUIRED_CONFIG_FIELDS = ("apiKey", "projectId", "databaseURL", "authDomain", "storageBucket")
SYNCED_COLLECTIONS = ENTITY_COLLECTIONS + (SETTINGS,)


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class RemoteSyncAdapter:
    def __init__(
        self,
        store: RecordStore,
        http: requests.Session | None = None,
        admin_url: str | None = None,
        admin_token: str | None = None,
        timeout: float | None = None,
    ):
        self.store = store
        self.http = http or requests.Session()
        self.admin_url = (settings.ADMIN_DATABASE_URL if admin_url is None else admin_url).rstrip("/")
        self.admin_token = settings.ADMIN_AUTH_TOKEN if admin_token is None else admin_token
        self.timeout = settings.REMOTE_TIMEOUT_SECONDS if timeout is None else timeout

    @property
    def clinic_id(self) -> str:
        """This installation's id, created on first use and kept in the store."""
        clinic_id = self.store.get_value(CLINIC_ID_KEY)
        if not clinic_id:
            clinic_id = f"clinic_{generate_id()}"
            self.store.set_value(CLINIC_ID_KEY, clinic_id)
            logger.info(f"[SYNC] Generated clinic id {clinic_id}")
        return clinic_id

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def check_subscription(self, now: datetime | None = None) -> SubscriptionStatus:
        """
        Read this clinic's subscription record from the admin database.

        Valid iff subscriptionActive is true and now <= endDate. Any failure
        to obtain a well-formed record raises SubscriptionCheckFailed.
        """
        if not self.admin_url:
            raise SubscriptionCheckFailed("Admin database is not configured")

        clinic_id = self.clinic_id
        params = {"auth": self.admin_token} if self.admin_token else None
        try:
            response = self.http.get(
                f"{self.admin_url}/clinics/{clinic_id}.json", params=params, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[SYNC] Subscription check failed for {clinic_id}: {e}")
            raise SubscriptionCheckFailed(f"Subscription check failed: {e}") from e

        if not data:
            raise SubscriptionCheckFailed(f"Clinic {clinic_id} not found in admin database")
        try:
            record = SubscriptionRecord.model_validate(data)
        except pydantic.ValidationError as e:
            logger.error(f"[SYNC] Malformed subscription record for {clinic_id}: {e}")
            raise SubscriptionCheckFailed("Malformed subscription record") from e

        now = _as_utc(now or datetime.now(timezone.utc))
        if not record.subscription_active:
            reason = "Subscription is not active"
        elif now > _as_utc(record.end_date):
            reason = f"Subscription expired on {record.end_date.date()}"
        else:
            reason = ""

        status = SubscriptionStatus(clinic_id=clinic_id, valid=not reason, reason=reason, subscription=record)
        logger.info(f"[SYNC] Subscription for {clinic_id}: {'valid' if status.valid else reason}")
        return status

    # ------------------------------------------------------------------
    # Clinic database configuration
    # ------------------------------------------------------------------

    def test_config(self, config: dict) -> FirebaseConfig:
        """
        Validate a clinic database config, try it, and cache it on success.

        A 401/403 from the trial read still proves the database exists and
        answered, so it counts as connected.
        """
        for field in REQUIRED_CONFIG_FIELDS:
            if not str(config.get(field) or "").strip():
                raise RemoteConfigInvalid(f"{field} is required")
        parsed = FirebaseConfig.model_validate(config)

        try:
            response = self.http.get(
                f"{parsed.database_url.rstrip('/')}/.json",
                params={"shallow": "true"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteConfigInvalid(f"Could not reach {parsed.database_url}: {e}") from e

        if response.status_code in (401, 403):
            logger.info("[SYNC] Trial read denied; database reachable")
        elif not response.ok:
            raise RemoteConfigInvalid(f"Database answered HTTP {response.status_code}")

        self.store.set_value(CLINIC_CONFIG_KEY, parsed.model_dump(by_alias=True))
        logger.info(f"[SYNC] Cached clinic database config for project {parsed.project_id}")
        return parsed

    def cached_config(self) -> FirebaseConfig:
        data = self.store.get_value(CLINIC_CONFIG_KEY)
        if not data:
            raise RemoteConfigInvalid("Clinic database is not configured")
        return FirebaseConfig.model_validate(data)

    def clear_cached_config(self) -> None:
        self.store.remove_value(CLINIC_CONFIG_KEY)
        logger.info("[SYNC] Cleared cached clinic database config")

    def connection_status(self, subscription: SubscriptionStatus | None = None) -> ConnectionStatus:
        return ConnectionStatus(
            clinic_id=self.clinic_id,
            admin_configured=bool(self.admin_url),
            clinic_configured=self.store.has_value(CLINIC_CONFIG_KEY),
            subscription_valid=bool(subscription and subscription.valid),
        )

    # ------------------------------------------------------------------
    # Push / pull
    # ------------------------------------------------------------------

    def _collection_url(self, config: FirebaseConfig, collection: str) -> str:
        return f"{config.database_url.rstrip('/')}/clinics/{self.clinic_id}/{collection}.json"

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"[SYNC] {method} {url} failed: {e}")
            raise RemoteSyncFailed(f"Remote {method} failed: {e}") from e
        return response

    def push(self) -> dict:
        """Overwrite the remote copy of every synced collection. Returns record counts."""
        config = self.cached_config()
        counts = {}
        for collection in SYNCED_COLLECTIONS:
            value = self.store.get(collection)
            if collection in ENTITY_COLLECTIONS:
                counts[collection] = len(value)
                value = {item["id"]: item for item in value}
            self._send("PUT", self._collection_url(config, collection), json=value)
        logger.info(f"[SYNC] Pushed {counts}")
        return counts

    def pull(self) -> dict:
        """
        Replace local collections with the remote copies, in one transaction.

        Entity collections missing remotely become empty; local settings are
        kept when the remote has none. Returns record counts.
        """
        config = self.cached_config()
        remote = {}
        for collection in SYNCED_COLLECTIONS:
            try:
                remote[collection] = self._send("GET", self._collection_url(config, collection)).json()
            except ValueError as e:
                raise RemoteSyncFailed(f"Remote {collection} is not valid JSON") from e

        counts = {}
        with self.store.transaction():
            for collection in ENTITY_COLLECTIONS:
                value = remote.get(collection) or {}
                # Keyed by id remotely; numeric keys may come back as a list
                items = list(value.values()) if isinstance(value, dict) else [v for v in value if v]
                self.store.put(collection, items)
                counts[collection] = len(items)
            if remote.get(SETTINGS):
                self.store.put(SETTINGS, remote[SETTINGS])

        logger.info(f"[SYNC] Pulled {counts}")
        return counts
