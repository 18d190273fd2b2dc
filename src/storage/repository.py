from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from src.models.tables import Installation


class InstallationRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def register(
        self,
        device_type: str,
        device_token: str,
        app_id: str = "default",
        user_id: str | None = None,
    ) -> Installation:
        row = self.db.execute(
            select(Installation).where(
                Installation.device_type == device_type,
                Installation.device_token == device_token,
            )
        ).scalar_one_or_none()
        if row is None:
            row = Installation(device_type=device_type, device_token=device_token)
            self.db.add(row)
        row.app_id = app_id
        row.user_id = user_id
        row.status = "active"
        self.db.commit()
        self.db.refresh(row)
        return row

    def get(self, installation_id: int) -> Installation | None:
        return self.db.get(Installation, installation_id)

    def find(
        self,
        app_id: str | None = None,
        user_id: str | None = None,
        device_type: str | None = None,
    ) -> list[Installation]:
        stmt = select(Installation).where(Installation.status == "active")
        if app_id:
            stmt = stmt.where(Installation.app_id == app_id)
        if user_id:
            stmt = stmt.where(Installation.user_id == user_id)
        if device_type:
            stmt = stmt.where(Installation.device_type == device_type)
        return list(self.db.execute(stmt.order_by(Installation.id.asc())).scalars().all())

    def list_tokens(self, device_type: str, app_id: str | None = None, user_id: str | None = None) -> list[str]:
        return [row.device_token for row in self.find(app_id=app_id, user_id=user_id, device_type=device_type)]

    def remove(self, installation_id: int) -> bool:
        row = self.get(installation_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        return True

    def remove_tokens(self, device_type: str, tokens: Iterable[str]) -> int:
        token_list = list(tokens)
        if not token_list:
            return 0
        result = self.db.execute(
            delete(Installation).where(
                Installation.device_type == device_type,
                Installation.device_token.in_(token_list),
            )
        )
        self.db.commit()
        return result.rowcount or 0
