import argparse
import asyncio
import logging
import sys
import time
from typing import List, Optional

from dotenv import load_dotenv

from playlist_actions.application.actions import PlaylistActionBar
from playlist_actions.application.library import partition_playlists
from playlist_actions.crosscutting.config import ConfigError, SecretManager, ServerConfig, get_secret_manager
from playlist_actions.crosscutting.logging import setup_logging
from playlist_actions.domain.entities import Playlist, QueueCommand
from playlist_actions.infrastructure.files import DirectoryFileSaver
from playlist_actions.infrastructure.notifications import LoggingNotifier, Notification, RefreshSignal
from playlist_actions.infrastructure.providers.library import LibraryClient
from playlist_actions.infrastructure.queue import InMemoryPlaybackQueue


QUEUE_COMMANDS = {
    'play': 'play',
    'shuffle': 'shuffle',
    'play-next': 'play_next',
    'enqueue': 'enqueue',
}


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human readable byte size, e.g. ``1.5 MB``."""
    if not size:
        return '0 Bytes'
    units = ['Bytes', 'KB', 'MB', 'GB', 'TB']
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.{decimals}f}".rstrip('0').rstrip('.')
    return f"{text} {units[index]}"


class CLI:
    """Command Line Interface for playlist actions."""

    def __init__(self, secret_manager: Optional[SecretManager] = None):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self._secret_manager = secret_manager
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='playlist-actions',
            description='Play, queue, sync and export playlists of a music library server'
        )
        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        def add_log_level(sub: argparse.ArgumentParser) -> None:
            sub.add_argument(
                '--log-level',
                choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                default='WARNING',
                help='Set logging level'
            )

        list_parser = subparsers.add_parser('list', help='List playlists, yours first')
        add_log_level(list_parser)

        for name in QUEUE_COMMANDS:
            queue_parser = subparsers.add_parser(name, help=f'{name.replace("-", " ").capitalize()} a playlist')
            queue_parser.add_argument('playlist_id', help='Playlist ID')
            add_log_level(queue_parser)

        sync_parser = subparsers.add_parser('sync', help='Resynchronize an external playlist')
        sync_parser.add_argument('playlist_id', help='Playlist ID')
        sync_parser.add_argument(
            '--yes', '-y',
            action='store_true',
            help='Do not ask for confirmation'
        )
        add_log_level(sync_parser)

        export_parser = subparsers.add_parser('export', help='Export a playlist as M3U')
        export_parser.add_argument('playlist_id', help='Playlist ID')
        export_parser.add_argument(
            '--output-dir',
            default=None,
            help='Directory to save the file in (default: PA_DOWNLOAD_DIR or current directory)'
        )
        add_log_level(export_parser)

        return parser

    def _setup_logging(self, level: str, username: Optional[str] = None) -> None:
        """Setup logging configuration."""
        setup_logging(level, username=username)

    def _cleanup_resources(self) -> None:
        logger = logging.getLogger(__name__)
        if self._start_time:
            duration = time.time() - self._start_time
            logger.debug(f"CLI execution time: {duration:.2f}s")

    def _get_secret_manager(self) -> SecretManager:
        if self._secret_manager is None:
            self._secret_manager = get_secret_manager()
        return self._secret_manager

    def _create_client(self, config: ServerConfig) -> LibraryClient:
        """Create the REST client, persisting rotated tokens."""
        return LibraryClient(
            config.base_url,
            token=config.token,
            timeout=config.timeout,
            on_token_refresh=self._get_secret_manager().save_server_token,
        )

    def _print_notification(self, notification: Notification) -> None:
        stream = sys.stderr if notification.level in ('warning', 'error') else sys.stdout
        print(notification.text, file=stream)

    def _create_action_bar(self, client: LibraryClient, playlist: Playlist,
                           config: ServerConfig, output_dir: Optional[str] = None,
                           queue: Optional[InMemoryPlaybackQueue] = None) -> PlaylistActionBar:
        secret_manager = self._get_secret_manager()
        return PlaylistActionBar(
            playlist,
            source=client,
            queue=queue or InMemoryPlaybackQueue(),
            notifier=LoggingNotifier(sink=self._print_notification),
            refresher=RefreshSignal(),
            saver=DirectoryFileSaver(output_dir or config.download_dir),
            session=secret_manager.build_session(config),
        )

    def _list_playlists(self, client: LibraryClient, config: ServerConfig) -> int:
        session = self._get_secret_manager().build_session(config)
        mine, shared = partition_playlists(client.list_playlists(), session)

        print("Playlists:")
        print("-" * 50)
        for playlist in mine:
            print(self._describe(playlist))
        if shared:
            print()
            print("Shared playlists:")
            print("-" * 50)
            for playlist in shared:
                print(self._describe(playlist))
        return 0

    def _describe(self, playlist: Playlist) -> str:
        external = " [EXTERNAL]" if playlist.is_external else ""
        return (f"{playlist.id}: {playlist.name}{external} "
                f"(tracks: {playlist.song_count}, {format_bytes(playlist.size)})")

    async def _run_queue_action(self, bar: PlaylistActionBar, method: str,
                                queue: InMemoryPlaybackQueue) -> int:
        command: Optional[QueueCommand] = await getattr(bar, method)()
        if command is None:
            return 1
        print(f"{command.action.value}: {len(command)} tracks from '{bar.playlist.name}'")
        for position, track in enumerate(queue.tracks(), start=1):
            marker = '>' if position - 1 == queue.current_index else ' '
            print(f"{marker} {position:4d}. {track.artist} - {track.title}")
        return 0

    def _ask_sync_confirmation(self, bar: PlaylistActionBar, assume_yes: bool) -> bool:
        """Move the sync into CONFIRMING and ask the user, before any event loop runs."""
        bar.sync.request_sync()
        if assume_yes:
            return True
        answer = input(f"Sync playlist '{bar.playlist.name}' from {bar.view_original_url}? "
                       f"Local changes will be overwritten. [y/N] ")
        if answer.strip().lower() in ('y', 'yes'):
            return True
        bar.sync.cancel()
        print("Sync cancelled")
        return False

    async def _run_sync(self, bar: PlaylistActionBar) -> int:
        return 0 if await bar.sync.confirm() else 1

    async def _run_export(self, bar: PlaylistActionBar) -> int:
        path = await bar.export()
        if path is None:
            return 1
        print(f"Saved {path}")
        return 0

    def _execute(self, args: argparse.Namespace) -> int:
        config = self._get_secret_manager().get_server_config()
        self._setup_logging(args.log_level, username=config.username)
        client = self._create_client(config)

        if args.command == 'list':
            return self._list_playlists(client, config)

        playlist = client.get_playlist(args.playlist_id)

        if args.command in QUEUE_COMMANDS:
            queue = InMemoryPlaybackQueue()
            bar = self._create_action_bar(client, playlist, config, queue=queue)
            return asyncio.run(self._run_queue_action(bar, QUEUE_COMMANDS[args.command], queue))
        if args.command == 'sync':
            bar = self._create_action_bar(client, playlist, config)
            if bar.sync is None:
                print(f"Playlist '{playlist.name}' is not an external playlist", file=sys.stderr)
                return 1
            if not self._ask_sync_confirmation(bar, args.yes):
                return 0
            return asyncio.run(self._run_sync(bar))
        if args.command == 'export':
            bar = self._create_action_bar(client, playlist, config, output_dir=args.output_dir)
            return asyncio.run(self._run_export(bar))

        self.parser.print_help()
        return 1

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the process exit code."""
        self._start_time = time.time()
        logger = logging.getLogger(__name__)

        args = self.parser.parse_args(argv)
        if not args.command:
            self.parser.print_help()
            return 1

        try:
            return self._execute(args)
        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            return 130
        except Exception as e:
            logger.error(f"CLI error: {e}")
            print(f"Error: {e}", file=sys.stderr)
            return 1
        finally:
            self._cleanup_resources()


def main():
    """Main entry point."""
    load_dotenv()
    cli = CLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
