from typing import List

import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import DomainError
from wellnest.crud.settingsCrud import update_settings
from wellnest.graphql.auth.permissions import IsAdmin
from wellnest.graphql.settings.types import SiteSettingInput, SiteSettingsResponse, settings_list


@strawberry.type
class SettingsMutation:
    @strawberry.mutation(permission_classes=[IsAdmin])
    async def update_site_settings(self, info: strawberry.Info, input: List[SiteSettingInput]) -> SiteSettingsResponse:
        db: AsyncSession = info.context.db

        try:
            values = await update_settings(db, {item.key: item.value for item in input})
            return SiteSettingsResponse(success=True, settings=settings_list(values), message="Settings saved")
        except DomainError as e:
            await db.rollback()
            return SiteSettingsResponse(success=False, settings=[], message=e.message, code=e.code.value)
