"""
Credential stores.

Pure storage for token material, no network calls. Two backends:

- DatabaseCredentialStore: ``credentials`` table, used by the API and worker
- FileCredentialStore: one JSON file per account, used by the CLI
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from coachsync.shared.repository import BaseRepository
from .models import Credential
from .schemas import TokenSet

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Load and overwrite the single credential of an (account, provider)."""

    @abstractmethod
    async def get(self, account_id: str, provider: str) -> Optional[TokenSet]:
        ...

    @abstractmethod
    async def save(self, tokens: TokenSet) -> None:
        """Insert or overwrite all token fields in one write."""


class CredentialRepository(BaseRepository[Credential]):
    """Repository for OAuth credentials."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Credential)

    async def get_for(self, account_id: str, provider: str) -> Credential | None:
        """
        Get credential row for account and provider.

        Returns:
            Credential if found, None otherwise
        """
        return await self.get_by(account_id=account_id, provider=provider)


class DatabaseCredentialStore(CredentialStore):
    """SQLAlchemy-backed credential store. Each save commits."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = CredentialRepository(db)

    async def get(self, account_id: str, provider: str) -> Optional[TokenSet]:
        row = await self.repo.get_for(account_id, provider)
        if not row:
            return None
        return TokenSet(
            account_id=row.account_id,
            provider=row.provider,
            access_token=row.access_token,
            refresh_token=row.refresh_token,
            expires_at=row.expires_at,
            scope=row.scope,
            external_athlete_id=row.external_athlete_id,
        )

    async def save(self, tokens: TokenSet) -> None:
        row = await self.repo.get_for(tokens.account_id, tokens.provider)
        fields = {
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
            "expires_at": tokens.expires_at,
            "scope": tokens.scope,
            "external_athlete_id": tokens.external_athlete_id,
        }
        if row:
            await self.repo.update(row, **fields)
        else:
            await self.repo.create(
                account_id=tokens.account_id,
                provider=tokens.provider,
                **fields
            )
        await self.db.commit()


class FileCredentialStore(CredentialStore):
    """
    JSON file credential store.

    Layout: ``<directory>/<provider>_<account_id>.json``, written with a
    synced temporary file and ``os.replace``; a failed write leaves no
    temporary file behind.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()

    def path(self, account_id: str, provider: str) -> Path:
        safe_account = "".join(c if c.isalnum() or c in "-_" else "_" for c in account_id)
        return self.directory / f"{provider}_{safe_account}.json"

    async def get(self, account_id: str, provider: str) -> Optional[TokenSet]:
        path = self.path(account_id, provider)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        return TokenSet(**data)

    async def save(self, tokens: TokenSet) -> None:
        self.directory.mkdir(parents=True, exist_ok=True, mode=0o700)
        target = self.path(tokens.account_id, tokens.provider)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.directory,
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump(asdict(tokens), tmp, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, target)
        except OSError:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Saved {tokens.provider} credential to {target}")
