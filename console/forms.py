from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

from console.errors import AuthExpired, RequestFailed, ValidationRejected
from console.models import DingBotConfig, SyncTaskConfig
from console.settings import SYNC_INTERVAL_MAX, SYNC_INTERVAL_MIN

LOGGER = logging.getLogger(__name__)

C = TypeVar("C", bound=BaseModel)

Prepare = Callable[[dict[str, Any]], dict[str, Any]]


def _unchanged(values: dict[str, Any]) -> dict[str, Any]:
    return values


def clamp_interval(value: Any) -> int:
    try:
        minutes = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"interval_minutes must be a whole number, got {value!r}") from exc
    return max(SYNC_INTERVAL_MIN, min(SYNC_INTERVAL_MAX, minutes))


def prepare_sync_task(values: dict[str, Any]) -> dict[str, Any]:
    prepared = dict(values)
    prepared["name"] = str(prepared.get("name") or "").strip()
    prepared["interval_minutes"] = clamp_interval(prepared.get("interval_minutes", SYNC_INTERVAL_MIN))
    prepared["status"] = bool(prepared.get("status"))
    return prepared


def prepare_bot_config(values: dict[str, Any]) -> dict[str, Any]:
    prepared = dict(values)
    prepared["access_token"] = str(prepared.get("access_token") or "").strip()
    prepared["secret_token"] = str(prepared.get("secret_token") or "").strip()
    prepared["status"] = bool(prepared.get("status"))
    return prepared


class ConfigFormController(Generic[C]):
    """
    Load / edit / submit / reload cycle for a singleton backend record.

    The draft is replaced wholesale by every successful load. A failed save
    leaves it exactly as submitted so the operator can retry.
    """

    def __init__(
        self,
        *,
        load: Callable[[], Awaitable[Optional[C]]],
        save: Callable[[C], Awaitable[Any]],
        defaults: C,
        label: str,
        prepare: Prepare = _unchanged,
    ):
        self._load = load
        self._save = save
        self._prepare = prepare
        self.label = label
        self.draft: C = defaults.model_copy()
        self.loading = False
        self.saving = False
        self.error: Optional[str] = None
        self.success: Optional[str] = None
        self._load_lock = asyncio.Lock()

    def _build(self, values: dict[str, Any]) -> C:
        return type(self.draft).model_validate(self._prepare(values))

    async def load(self) -> None:
        async with self._load_lock:
            self.loading = True
            self.error = None
            try:
                record = await self._load()
            except AuthExpired:
                return
            except RequestFailed as exc:
                LOGGER.warning("Loading %s failed: %s", self.label, exc)
                self.error = f"Failed to load {self.label}"
                return
            finally:
                self.loading = False
            if record is not None:
                self.draft = record

    mount = load

    def update(self, **changes: Any) -> C:
        self.draft = self._build({**self.draft.model_dump(), **changes})
        return self.draft

    async def submit(self) -> bool:
        if self.saving:
            return False
        self.saving = True
        self.error = None
        self.success = None
        try:
            self.draft = self._build(self.draft.model_dump())
            await self._save(self.draft)
        except AuthExpired:
            return False
        except ValidationRejected as exc:
            LOGGER.warning("Backend rejected %s: %s", self.label, exc.message)
            self.error = f"Failed to save {self.label}: {exc.message}"
            return False
        except RequestFailed as exc:
            LOGGER.warning("Saving %s failed: %s", self.label, exc)
            self.error = f"Failed to save {self.label}"
            return False
        finally:
            self.saving = False
        self.success = f"{self.label[:1].upper()}{self.label[1:]} saved"
        await self.load()
        return True


def sync_task_form(gateway: Any) -> ConfigFormController[SyncTaskConfig]:
    return ConfigFormController(
        load=gateway.get_sync_task,
        save=gateway.save_sync_task,
        defaults=SyncTaskConfig(),
        label="sync task configuration",
        prepare=prepare_sync_task,
    )


def bot_config_form(gateway: Any) -> ConfigFormController[DingBotConfig]:
    return ConfigFormController(
        load=gateway.get_bot_config,
        save=gateway.save_bot_config,
        defaults=DingBotConfig(),
        label="DingTalk bot configuration",
        prepare=prepare_bot_config,
    )
