import logging
from pathlib import Path
from typing import Iterator, Optional, Union

from playlist_actions.domain.ports import FileSaver

logger = logging.getLogger(__name__)


class DirectoryFileSaver(FileSaver):
    """Saves downloaded files into a directory, never overwriting existing ones."""

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self.directory = Path(directory) if directory else Path.cwd()

    def _candidates(self, filename: str) -> Iterator[Path]:
        candidate = self.directory / filename
        yield candidate
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while True:
            yield self.directory / f"{stem} ({counter}){suffix}"
            counter += 1

    def save(self, filename: str, content: bytes, media_type: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        for path in self._candidates(filename):
            try:
                # 'x' fails instead of truncating a file that already exists.
                with open(path, 'xb') as f:
                    f.write(content)
            except FileExistsError:
                continue
            logger.info(f"Saved {media_type} file to {path}")
            return path
