import logging
import os
from datetime import timedelta
from pathlib import Path

import lancedb

logger = logging.getLogger(__name__)


def connect_lancedb(db_dir: Path) -> lancedb.DBConnection:
    os.makedirs(db_dir, exist_ok=True)
    logger.info("[INDEX] Connecting to LanceDB at: %s", db_dir)
    # every read checks for commits made by other processes (CLI imports)
    return lancedb.connect(str(db_dir), read_consistency_interval=timedelta(0))
