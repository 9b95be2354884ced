from typing import List

import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.crud.settingsCrud import get_settings
from wellnest.graphql.settings.types import SiteSetting, settings_list


@strawberry.type
class SettingsQuery:
    @strawberry.field
    async def site_settings(self, info: strawberry.Info) -> List[SiteSetting]:
        """Public: the booking UI shows the cancellation policy"""
        db: AsyncSession = info.context.db
        return settings_list(await get_settings(db))
