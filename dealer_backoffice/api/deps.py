from typing import Annotated

from fastapi import Depends

from dealer_backoffice.config import Settings, get_settings


AppSettings = Annotated[Settings, Depends(get_settings)]
