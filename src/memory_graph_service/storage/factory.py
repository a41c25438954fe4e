# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Memory service factory.

Builds the SQLite handle and the service facade from settings, then runs
schema creation and legacy migration before handing the service out.
"""

import logging

from ..config import Settings
from ..services.memory_service import MemoryService
from .database import SQLiteDatabase

logger = logging.getLogger(__name__)


async def create_memory_service(config: Settings | None = None) -> MemoryService:
    """
    Create and initialize the memory service.

    Args:
        config: Settings to build from (defaults to the environment-driven module settings)

    Returns:
        Initialized MemoryService instance
    """
    if config is None:
        from ..config import settings as config

    logger.info(f"Creating memory service at {config.storage.db_path}")

    db = SQLiteDatabase(config.storage.db_path)
    service = MemoryService(
        db,
        legacy_path=config.storage.resolved_legacy_path,
        migrate_legacy=config.storage.migrate_legacy,
        limits=config.limits,
        graph_settings=config.graph,
        search_settings=config.search,
    )

    await service.initialize()
    logger.info("MemoryService initialized successfully")

    return service
