"""ConfigStore — holds the current OrgConfig snapshot and swaps it atomically.

Reads are lock-free: snapshot() returns the current immutable object and a
request keeps using the object it captured even if an update lands meanwhile.
Updates are serialized by an asyncio.Lock: merge patch -> validate -> stage
file -> audit + commit -> os.replace -> swap reference.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_audit.application.service import AuditService
from src.cm_common.enums import AuditAction
from src.cm_common.errors import ConfigModuleNotFoundError, ConfigValidationError
from src.cm_config.domain.models import EDITABLE_MODULES, OrgConfig

logger = logging.getLogger(__name__)


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge patch into a copy of base. Lists and scalars are replaced."""
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_config(raw: dict[str, Any]) -> OrgConfig:
    try:
        return OrgConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigValidationError(_summarize(e)) from None


class ConfigStore:
    def __init__(
        self,
        path: str | Path | None = None,
        initial: OrgConfig | None = None,
        audit: AuditService | None = None,
    ) -> None:
        self._path = Path(path) if path is not None else None
        self._snapshot = initial or OrgConfig()
        self._audit = audit or AuditService()
        self._lock = asyncio.Lock()

    def load(self) -> OrgConfig:
        """(Re)load the snapshot from disk. Missing file -> defaults."""
        if self._path is None or not self._path.exists():
            logger.warning("Configuration file not found (%s); using defaults", self._path)
            self._snapshot = OrgConfig()
            return self._snapshot
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"{self._path}: {e}") from None
        self._snapshot = parse_config(raw)
        logger.info("Configuration loaded from %s", self._path)
        return self._snapshot

    def snapshot(self) -> OrgConfig:
        return self._snapshot

    async def update_module(
        self,
        db: AsyncSession,
        module: str,
        patch: dict[str, Any],
        actor_handle: str,
    ) -> OrgConfig:
        if module not in EDITABLE_MODULES:
            raise ConfigModuleNotFoundError(module)

        async with self._lock:
            current = self._snapshot
            raw = current.model_dump(mode="json")
            raw[module] = deep_merge(raw.get(module) or {}, patch)
            updated = parse_config(raw)

            staged = self._stage(updated)
            try:
                # Audited under the configuration in force when the change was made
                await self._audit.record(
                    db,
                    current,
                    AuditAction.CHANGE_SETTINGS,
                    actor_handle,
                    target=f"module:{module}",
                    details={"keys": sorted(patch)},
                )
                await db.commit()
            except Exception:
                await db.rollback()
                if staged is not None:
                    staged.unlink(missing_ok=True)
                raise

            if staged is not None and self._path is not None:
                os.replace(staged, self._path)
            self._snapshot = updated

        logger.info("Configuration module %s updated by %s", module, actor_handle)
        return updated

    def _stage(self, config: OrgConfig) -> Path | None:
        """Write config to a temp file next to the target; caller renames it in place."""
        if self._path is None:
            return None
        fd, tmp_name = tempfile.mkstemp(
            prefix=".modules.", suffix=".json", dir=self._path.parent
        )
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(config.model_dump(mode="json"), fh, indent=2, ensure_ascii=False)
            fh.write("\n")
        return Path(tmp_name)
