import logging
import sys

import uvicorn

from petcare.core.config import get_settings
from petcare.reminders.config import get_reminder_settings
from petcare.reminders.service import create_app

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

app = create_app(settings, get_reminder_settings())


if __name__ == "__main__":
    uvicorn.run("petcare.main:app", host="0.0.0.0", port=8000)
