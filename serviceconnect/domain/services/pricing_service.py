"""
Pricing Service - Unlock price per job category

Resolution order:
1. Admin override stored in admin_settings (key "unlock_price:<category>")
2. UNLOCK_PRICES from configuration
3. UNLOCK_PRICE_DEFAULT
"""
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from serviceconnect.core.config import settings
from serviceconnect.core.exceptions import InvalidAmountError, ValidationException
from serviceconnect.core.logging import get_logger, log_async_operation
from serviceconnect.core.validation import AmountValidator, CategoryValidator
from serviceconnect.db.models.admin_action_log import AdminActionLog, AdminActionType
from serviceconnect.db.models.admin_setting import AdminSetting

logger = get_logger(__name__)

PRICE_SETTING_PREFIX = "unlock_price:"
PRICING_CATEGORY = "pricing"
MAX_UNLOCK_PRICE = Decimal("10000.00")


def price_setting_key(category: str) -> str:
    return f"{PRICE_SETTING_PREFIX}{CategoryValidator.normalize(category)}"


class PricingService:
    """Resolves and updates unlock prices"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_unlock_price(self, category: str) -> Decimal:
        """מחיר פתיחה לקטגוריה: override של אדמין, אחר כך הגדרות, אחר כך ברירת מחדל"""
        override = await self._get_override(category)
        if override is not None:
            return override

        configured = settings.UNLOCK_PRICES.get(CategoryValidator.normalize(category))
        if configured is not None:
            return configured

        return settings.UNLOCK_PRICE_DEFAULT

    async def list_overrides(self) -> dict[str, Decimal]:
        result = await self.db.execute(
            select(AdminSetting).where(AdminSetting.setting_key.startswith(PRICE_SETTING_PREFIX))
        )
        overrides: dict[str, Decimal] = {}
        for row in result.scalars().all():
            price = self._parse_price(row)
            if price is not None:
                overrides[row.setting_key[len(PRICE_SETTING_PREFIX):]] = price
        return overrides

    @log_async_operation("set_unlock_price")
    async def set_unlock_price(
        self,
        category: str,
        price: Decimal,
        admin_id: Optional[int] = None
    ) -> Decimal:
        """
        Store an admin override for a category price.

        Applies to unlocks attempted after the commit; unlocks already
        recorded keep the amount they were charged.
        """
        is_valid, error = CategoryValidator.validate(category)
        if not is_valid:
            raise ValidationException(error, field="category")

        price = AmountValidator.to_decimal(price)
        is_valid, error = AmountValidator.validate(price, max_value=MAX_UNLOCK_PRICE)
        if not is_valid:
            raise InvalidAmountError(price, error)
        price = price.quantize(AmountValidator.CENT)

        key = price_setting_key(category)
        result = await self.db.execute(
            select(AdminSetting).where(AdminSetting.setting_key == key)
        )
        setting = result.scalar_one_or_none()
        previous = setting.setting_value if setting else None

        if setting is None:
            setting = AdminSetting(
                setting_key=key,
                setting_value=str(price),
                category=PRICING_CATEGORY,
                description=f"Unlock price for {CategoryValidator.normalize(category)}",
                updated_by=admin_id
            )
            self.db.add(setting)
        else:
            setting.setting_value = str(price)
            setting.updated_by = admin_id

        self.db.add(AdminActionLog(
            admin_id=admin_id,
            action=AdminActionType.UPDATE_UNLOCK_PRICE,
            target_type="category",
            details={"category": CategoryValidator.normalize(category), "old": previous, "new": str(price)}
        ))
        await self.db.commit()

        logger.info(
            "Unlock price updated",
            extra_data={"category": CategoryValidator.normalize(category), "price": str(price), "admin_id": admin_id}
        )
        return price

    async def _get_override(self, category: str) -> Optional[Decimal]:
        result = await self.db.execute(
            select(AdminSetting).where(AdminSetting.setting_key == price_setting_key(category))
        )
        setting = result.scalar_one_or_none()
        if setting is None:
            return None
        return self._parse_price(setting)

    @staticmethod
    def _parse_price(setting: AdminSetting) -> Optional[Decimal]:
        """ערך לא תקין בטבלה מתעלם ממנו (עם אזהרה) ונופל לברירת המחדל"""
        try:
            price = Decimal(setting.setting_value)
        except InvalidOperation:
            price = None
        if price is None or not price.is_finite() or price <= 0:
            logger.warning(
                "Ignoring invalid unlock price override",
                extra_data={"setting_key": setting.setting_key, "value": setting.setting_value}
            )
            return None
        return price.quantize(AmountValidator.CENT)
