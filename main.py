import logging
import uvicorn
from landedcost.database import init_db
from landedcost.settings import LOG_FORMAT, LOG_LEVEL
from landedcost.api import app

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

# Create database tables
init_db()

if __name__ == "__main__":
    uvicorn.run(
        "landedcost.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
