"""CLI command implementations for game_updater.

- resolve: Show the patch chain for an installation
- verify: Verify installed sections against checksum lists
- update: Apply patches, install the game and missing DLCs
"""

from game_updater.commands.resolve import resolve_command
from game_updater.commands.update import update_command
from game_updater.commands.verify import verify_command

__all__ = ["resolve_command", "update_command", "verify_command"]
