from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator

from utils.database_utils import ensure_utc

# client timestamps without an offset are read as UTC
UTCTimestamp = Annotated[datetime, AfterValidator(ensure_utc)]
