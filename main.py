import argparse
import asyncio
import logging

from dotenv import load_dotenv

from token_states.config import Settings
from token_states.runtime import TokenStatesRuntime
from token_states.services.legacy_migration import migrate_scene_tokens
from token_states.utils.logger_config import setup_logging

logger = logging.getLogger(__name__)


async def resync(runtime: TokenStatesRuntime, scene_ids):
    """Re-evaluate every token of each scene, as a canvas load would."""
    for scene_id in scene_ids:
        await runtime.bus.emit("canvasReady", scene_id)


def main():
    parser = argparse.ArgumentParser(description="Reconcile token appearances in the store.")
    parser.add_argument("scenes", nargs="*", help="Scene ids to resync (default: all scenes)")
    parser.add_argument(
        "--migrate", action="store_true", help="Persist structured configs for legacy rules first"
    )
    parser.add_argument("--env-file", default=None, help="Extra .env file to load")
    args = parser.parse_args()

    load_dotenv()
    settings = Settings.from_env(args.env_file)
    setup_logging(settings.log_level)

    with TokenStatesRuntime(settings) as runtime:
        scene_ids = args.scenes or [scene.id for scene in runtime.store.list_scenes()]
        if not scene_ids:
            logger.warning(f"No scenes in {settings.db_path}")
            return

        if args.migrate:
            for scene_id in scene_ids:
                migrate_scene_tokens(runtime.store, scene_id)

        asyncio.run(resync(runtime, scene_ids))


if __name__ == "__main__":
    main()
