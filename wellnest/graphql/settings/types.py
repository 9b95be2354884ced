from typing import Dict, List, Optional

import strawberry


@strawberry.type
class SiteSetting:
    key: str
    value: str


def settings_list(values: Dict[str, str]) -> List[SiteSetting]:
    return [SiteSetting(key=k, value=v) for k, v in sorted(values.items())]


@strawberry.input
class SiteSettingInput:
    key: str
    value: str


@strawberry.type
class SiteSettingsResponse:
    success: bool
    settings: List[SiteSetting]
    message: str
    code: Optional[str] = None
