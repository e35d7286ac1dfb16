"""Reading suite sources and expected results, writing actual results.

A `Retrieval` reads from a local path or an `http(s)` URL. A `Storage`
is a local file that results are written to.
"""

from logging import getLogger
from pathlib import Path

import httpx

from pytest_ply.errors import PlyError
from pytest_ply.names import URL_SCHEMES

logger = getLogger(__name__)


class Retrieval:
    """Read-only access to a local file or a remote document."""

    def __init__(self, location: str | Path) -> None:
        """Initialize the retrieval.

        Args:
            location: Local path or absolute `http(s)` URL.
        """
        self.location = location if isinstance(location, str) else location.as_posix()

    def __repr__(self) -> str:
        """String represenatation."""
        return f'{type(self).__name__}({self.location!r})'

    def __str__(self) -> str:
        """Location text."""
        return self.location

    @property
    def is_remote(self) -> bool:
        """Whether the location is an URL."""
        return self.location.startswith(URL_SCHEMES)

    @property
    def path(self) -> Path:
        """Local path of the location.

        Raises:
            PlyError: If the location is remote.
        """
        if self.is_remote:
            raise PlyError(f'Remote location has no local path: {self.location}')

        return Path(self.location)

    @property
    def exists(self) -> bool:
        """Whether the document can be read."""
        if not self.is_remote:
            return self.path.is_file()

        try:
            return httpx.head(self.location, follow_redirects=True).is_success
        except httpx.HTTPError as error:
            logger.debug('Can not reach %s: %s', self.location, error)
            return False

    def read(self) -> str | None:
        """Read the document.

        Returns:
            Document text or `None` when it does not exist.
        """
        if not self.is_remote:
            if not self.path.is_file():
                return None
            return self.path.read_text(encoding='utf-8')

        response = httpx.get(self.location, follow_redirects=True)
        if response.status_code == httpx.codes.NOT_FOUND:
            return None

        response.raise_for_status()

        return response.text


class Storage:
    """Writable local file."""

    def __init__(self, path: str | Path) -> None:
        """Initialize the storage.

        Args:
            path: Local file path, parent directories are created on write.
        """
        self.path = Path(path)

    def __repr__(self) -> str:
        """String represenatation."""
        return f'{type(self).__name__}({self.path.as_posix()!r})'

    def __str__(self) -> str:
        """Location text."""
        return self.path.as_posix()

    @property
    def location(self) -> str:
        """Location text."""
        return self.path.as_posix()

    @property
    def exists(self) -> bool:
        """Whether the file exists."""
        return self.path.is_file()

    def read(self) -> str | None:
        """Read the file, `None` when it does not exist."""
        if not self.exists:
            return None

        return self.path.read_text(encoding='utf-8')

    def write(self, text: str) -> None:
        """Replace the file contents."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open('wt', encoding='utf-8', newline='\n') as output:
            output.write(text)

    def append(self, text: str) -> None:
        """Append text to the file, creating it when missing."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open('at', encoding='utf-8', newline='\n') as output:
            output.write(text)

    def remove(self) -> None:
        """Delete the file if it exists."""
        self.path.unlink(missing_ok=True)
