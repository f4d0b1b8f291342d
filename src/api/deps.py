from typing import Annotated

from fastapi import Depends

from config import Settings, get_settings
from planner import ActivityGenerator


def get_generator(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ActivityGenerator:
    return ActivityGenerator(settings)
