"""Admin-editable store settings stored as key/value rows.

Handlers call `SiteSettingsProvider.snapshot()` once per request and pass the
frozen result down, so a request never observes a half-applied admin edit.
"""

from dataclasses import dataclass, fields
from datetime import datetime

from sqlalchemy import DateTime, String, Text, func, select
from sqlalchemy.orm import Mapped, mapped_column

from storefront.common.db import Base
from storefront.common.logging import logger


class SiteSetting(Base):
    """One key/value setting row edited from the admin console."""

    __tablename__ = "site_settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


@dataclass(frozen=True)
class SiteSettingsSnapshot:
    """Immutable view of site settings for a single request."""

    store_name: str = "Storefront"
    support_email: str = ""
    support_phone: str = ""
    tracking_prefix: str = "ORD"
    currency: str = "PKR"
    bank_account_details: str = ""
    mobile_wallet_a_number: str = ""
    mobile_wallet_b_number: str = ""

    @classmethod
    def from_rows(cls, rows: dict[str, str]) -> "SiteSettingsSnapshot":
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in rows.items() if key in known and value}
        return cls(**values)


class SiteSettingsProvider:
    """Loads a fresh settings snapshot from the database on every call."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def snapshot(self) -> SiteSettingsSnapshot:
        try:
            with self.session_factory() as db:
                rows = db.execute(select(SiteSetting.key, SiteSetting.value)).all()
        except Exception as exc:
            logger.warning("site_settings_read_failed error=%s", exc)
            return SiteSettingsSnapshot()
        return SiteSettingsSnapshot.from_rows({row.key: row.value for row in rows})

    def put(self, key: str, value: str) -> None:
        """Insert or overwrite one setting row."""

        with self.session_factory() as db:
            row = db.get(SiteSetting, key)
            if row is None:
                db.add(SiteSetting(key=key, value=value))
            else:
                row.value = value
            db.commit()


class StaticSiteSettings:
    """Fixed snapshot provider, used when no settings table is available."""

    def __init__(self, snapshot: SiteSettingsSnapshot | None = None) -> None:
        self._snapshot = snapshot or SiteSettingsSnapshot()

    def snapshot(self) -> SiteSettingsSnapshot:
        return self._snapshot
