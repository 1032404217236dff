"""Artifact producers.

One producer per category wraps the external mechanism that creates the
backup file:

- database: `pg_dump` of the configured connection string, gzip-compressed
- config: JSON snapshot of the configured configuration files
- code: `tar -czf` archive of the source tree

Producers write to a hidden partial file, rename it into place and read
size and modification time back from disk.
"""

from __future__ import annotations

import gzip
import json
import logging
import os
import shutil
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from backend.services.lifecycle.command import run_command
from backend.services.lifecycle.errors import ConfigurationError, ProductionError
from backend.services.lifecycle.models import BackupArtifact, BackupCategory, utcnow
from backend.services.lifecycle.storage.local import PARTIAL_SUFFIX, LocalBackupStore


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_FILES = (
    "pyproject.toml",
    "package.json",
    "docker-compose.yml",
    ".env.example",
    ".github/workflows/backup.yml",
)

DEFAULT_CODE_EXCLUDES = ("node_modules", ".git", "dist", "build", "backups")


@dataclass
class ProducerConfig:
    """Configuration shared by all producers.

    Attributes:
        backup_dir: Local backup root.
        source_dir: Root of the application tree (config files, code archive).
        database_url: Connection string passed to pg_dump.
        config_files: Paths relative to source_dir captured by the config backup.
        code_excludes: Patterns excluded from the code archive.
        timeout_seconds: Timeout for each external command.
    """

    backup_dir: Path = Path("./backups")
    source_dir: Path = Path(".")
    database_url: Optional[str] = None
    config_files: List[str] = field(default_factory=lambda: list(DEFAULT_CONFIG_FILES))
    code_excludes: List[str] = field(default_factory=lambda: list(DEFAULT_CODE_EXCLUDES))
    timeout_seconds: Optional[float] = 3600


class ArtifactNamer:
    """Generate unique artifact identifiers.

    Identifiers look like `database_20240101T120000123456Z.sql.gz`. Stamps are
    strictly increasing per category within the process, and names that
    already exist in the target directory are skipped.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._last: Dict[BackupCategory, datetime] = {}
        self._lock = threading.Lock()

    def next_identifier(self, category: BackupCategory, extension: str, directory: Path) -> str:
        with self._lock:
            stamp = self._clock()
            last = self._last.get(category)
            if last is not None and stamp <= last:
                stamp = last + timedelta(microseconds=1)

            while True:
                name = f"{category.value}_{stamp.strftime('%Y%m%dT%H%M%S%f')}Z{extension}"
                if not (directory / name).exists():
                    break
                stamp += timedelta(microseconds=1)

            self._last[category] = stamp
            return name


def _partial_path(final_path: Path) -> Path:
    return final_path.with_name(f".{final_path.name}{PARTIAL_SUFFIX}")


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Failed to remove partial backup file %s", path)


class ArtifactProducer(ABC):
    """Create one artifact for a fixed category."""

    category: BackupCategory
    extension: str

    def __init__(self, config: ProducerConfig, store: LocalBackupStore, namer: ArtifactNamer):
        self.config = config
        self.store = store
        self.namer = namer

    def validate(self) -> None:
        """Check configuration before any side effect.

        Raises:
            ConfigurationError: When required configuration is missing.
        """

    def produce(self) -> BackupArtifact:
        """Create a new artifact.

        Returns:
            BackupArtifact: Handle with size and creation time read from disk.

        Raises:
            ConfigurationError: When required configuration is missing.
            ProductionError: When the external mechanism fails or the result
                cannot be stat'd.
        """

        self.validate()

        try:
            directory = self.store.ensure_category_dir(self.category)
        except OSError as exc:
            raise ProductionError(self.category, exc) from exc

        identifier = self.namer.next_identifier(self.category, self.extension, directory)
        final_path = directory / identifier
        partial = _partial_path(final_path)

        logger.info("Creating %s backup: %s", self.category.value, identifier)
        try:
            self._write(partial)
            os.replace(partial, final_path)
            artifact = self.store.stat_artifact(self.category, final_path)
        except ProductionError:
            raise
        except (OSError, ValueError) as exc:
            raise ProductionError(self.category, exc) from exc
        finally:
            _remove_quietly(partial)

        logger.info(
            "Created %s backup: %s (%.2f MB)",
            self.category.value,
            artifact.identifier,
            artifact.size_bytes / (1024 * 1024),
        )
        return artifact

    @abstractmethod
    def _write(self, dest: Path) -> None:
        """Write the artifact content to dest."""


def split_database_url(url: str) -> Tuple[str, Optional[str]]:
    """Remove the password from a connection URI.

    Returns:
        Tuple[str, Optional[str]]: URI without the password, and the password
        (from the userinfo or a `password` query parameter).
    """

    parts = urlsplit(url)
    password = parts.password
    netloc = parts.netloc
    if password is not None:
        userinfo, _, hostinfo = netloc.rpartition("@")
        user = userinfo.split(":", 1)[0]
        netloc = f"{user}@{hostinfo}" if user else hostinfo

    query = []
    for name, value in parse_qsl(parts.query, keep_blank_values=True):
        if name == "password":
            password = password or value
            continue
        query.append((name, value))

    safe = urlunsplit((parts.scheme, netloc, parts.path, urlencode(query), parts.fragment))
    return safe, password


class DatabaseProducer(ArtifactProducer):
    """PostgreSQL dump via pg_dump, compressed with gzip."""

    category = BackupCategory.DATABASE
    extension = ".sql.gz"

    def validate(self) -> None:
        if not self.config.database_url:
            raise ConfigurationError("DATABASE_URL is required for database backups")

    def _write(self, dest: Path) -> None:
        dump_path = dest.with_name(dest.name + ".sql")
        url, password = split_database_url(str(self.config.database_url))
        env = os.environ.copy()
        if password:
            env["PGPASSWORD"] = password
        try:
            result = run_command(
                [
                    "pg_dump",
                    url,
                    "--no-owner",
                    "--no-acl",
                    "--file",
                    str(dump_path),
                ],
                timeout=self.config.timeout_seconds,
                env=env,
            )
            if not result.ok:
                raise ProductionError(self.category, result.describe())

            with open(dump_path, "rb") as f_in:
                with gzip.open(dest, "wb") as f_out:
                    shutil.copyfileobj(f_in, f_out)
        finally:
            _remove_quietly(dump_path)


class ConfigProducer(ArtifactProducer):
    """JSON snapshot of configuration files."""

    category = BackupCategory.CONFIG
    extension = ".json"

    def _write(self, dest: Path) -> None:
        source = Path(self.config.source_dir)
        files: Dict[str, str] = {}
        for rel in self.config.config_files:
            path = source / rel
            if not path.is_file():
                logger.debug("Config file not found, skipping: %s", rel)
                continue
            files[rel] = path.read_text(encoding="utf-8")

        if not files:
            logger.warning("No configuration files found under %s", source)

        snapshot = {"timestamp": utcnow().isoformat(), "files": files}
        dest.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")


class CodeProducer(ArtifactProducer):
    """Compressed tarball of the source tree."""

    category = BackupCategory.CODE
    extension = ".tar.gz"

    def _excludes(self) -> List[str]:
        excludes = list(self.config.code_excludes)
        source = Path(self.config.source_dir).resolve()
        backup_dir = Path(self.config.backup_dir).resolve()
        try:
            relative = backup_dir.relative_to(source)
        except ValueError:
            return excludes
        if str(relative) not in ("", ".") and f"./{relative}" not in excludes:
            excludes.append(f"./{relative}")
        return excludes

    def _write(self, dest: Path) -> None:
        args = ["tar", "-czf", str(dest.resolve())]
        args.extend(f"--exclude={pattern}" for pattern in self._excludes())
        args.extend(["-C", str(Path(self.config.source_dir).resolve()), "."])

        result = run_command(args, timeout=self.config.timeout_seconds)
        if not result.ok:
            raise ProductionError(self.category, result.describe())


PRODUCER_CLASSES = {
    BackupCategory.DATABASE: DatabaseProducer,
    BackupCategory.CONFIG: ConfigProducer,
    BackupCategory.CODE: CodeProducer,
}


class ProducerRegistry:
    """Category -> producer lookup used by backup runs."""

    def __init__(self, producers: Mapping[BackupCategory, ArtifactProducer]):
        self._producers = dict(producers)

    @classmethod
    def from_config(cls, config: ProducerConfig, store: LocalBackupStore) -> "ProducerRegistry":
        namer = ArtifactNamer()
        return cls({category: klass(config, store, namer) for category, klass in PRODUCER_CLASSES.items()})

    def get(self, category: BackupCategory) -> ArtifactProducer:
        try:
            return self._producers[category]
        except KeyError:
            raise ConfigurationError(f"No producer registered for category: {category.value}") from None

    def validate(self, categories: Iterable[BackupCategory]) -> None:
        """Validate every producer needed for a run before any side effect."""

        for category in categories:
            self.get(category).validate()

    def produce(self, category: BackupCategory) -> BackupArtifact:
        return self.get(category).produce()
