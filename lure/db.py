"""SQLite storage for repository package metadata."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from lure.config import get_paths

CURRENT_VERSION = 2
"""Schema version; a database with any other version is reset."""

_SCHEMA = """
CREATE TABLE IF NOT EXISTS pkgs (
    name          TEXT NOT NULL,
    repository    TEXT NOT NULL,
    version       TEXT NOT NULL,
    release       INT  NOT NULL,
    epoch         INT,
    description   TEXT CHECK(description = 'null' OR (JSON_VALID(description) AND JSON_TYPE(description) = 'object')),
    homepage      TEXT CHECK(homepage = 'null' OR (JSON_VALID(homepage) AND JSON_TYPE(homepage) = 'object')),
    maintainer    TEXT CHECK(maintainer = 'null' OR (JSON_VALID(maintainer) AND JSON_TYPE(maintainer) = 'object')),
    architectures TEXT CHECK(architectures = 'null' OR (JSON_VALID(architectures) AND JSON_TYPE(architectures) = 'array')),
    licenses      TEXT CHECK(licenses = 'null' OR (JSON_VALID(licenses) AND JSON_TYPE(licenses) = 'array')),
    provides      TEXT CHECK(provides = 'null' OR (JSON_VALID(provides) AND JSON_TYPE(provides) = 'array')),
    conflicts     TEXT CHECK(conflicts = 'null' OR (JSON_VALID(conflicts) AND JSON_TYPE(conflicts) = 'array')),
    replaces      TEXT CHECK(replaces = 'null' OR (JSON_VALID(replaces) AND JSON_TYPE(replaces) = 'array')),
    depends       TEXT CHECK(depends = 'null' OR (JSON_VALID(depends) AND JSON_TYPE(depends) = 'object')),
    builddepends  TEXT CHECK(builddepends = 'null' OR (JSON_VALID(builddepends) AND JSON_TYPE(builddepends) = 'object')),
    optdepends    TEXT CHECK(optdepends = 'null' OR (JSON_VALID(optdepends) AND JSON_TYPE(optdepends) = 'object')),
    UNIQUE(name, repository)
);

CREATE TABLE IF NOT EXISTS lure_db_version (
    version INT NOT NULL
);
"""

_INSERT = """
INSERT OR REPLACE INTO pkgs (
    name, repository, version, release, epoch,
    description, homepage, maintainer,
    architectures, licenses, provides, conflicts, replaces,
    depends, builddepends, optdepends
) VALUES (
    :name, :repository, :version, :release, :epoch,
    :description, :homepage, :maintainer,
    :architectures, :licenses, :provides, :conflicts, :replaces,
    :depends, :builddepends, :optdepends
);
"""

# Dataclass attribute -> database column, for the JSON-encoded columns.
_JSON_COLUMNS: dict[str, tuple[str, Callable[[], Any]]] = {
    "description": ("description", dict),
    "homepage": ("homepage", dict),
    "maintainer": ("maintainer", dict),
    "architectures": ("architectures", list),
    "licenses": ("licenses", list),
    "provides": ("provides", list),
    "conflicts": ("conflicts", list),
    "replaces": ("replaces", list),
    "depends": ("depends", dict),
    "build_depends": ("builddepends", dict),
    "opt_depends": ("optdepends", dict),
}


@dataclass
class Package:
    """A package as stored in the database."""

    name: str
    version: str
    release: int
    epoch: int = 0
    description: dict[str, str] = field(default_factory=dict)
    homepage: dict[str, str] = field(default_factory=dict)
    maintainer: dict[str, str] = field(default_factory=dict)
    architectures: list[str] = field(default_factory=list)
    licenses: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    replaces: list[str] = field(default_factory=list)
    depends: dict[str, list[str]] = field(default_factory=dict)
    build_depends: dict[str, list[str]] = field(default_factory=dict)
    opt_depends: dict[str, list[str]] = field(default_factory=dict)
    repository: str = ""

    def _to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "name": self.name,
            "repository": self.repository,
            "version": self.version,
            "release": self.release,
            "epoch": self.epoch,
        }
        for attr, (column, _) in _JSON_COLUMNS.items():
            params[column] = json.dumps(getattr(self, attr), ensure_ascii=False)
        return params

    @classmethod
    def _from_row(cls, row: sqlite3.Row) -> Package:
        keys = set(row.keys())
        values: dict[str, Any] = {
            "name": row["name"],
            "version": row["version"],
            "release": row["release"],
            "epoch": row["epoch"] if "epoch" in keys and row["epoch"] is not None else 0,
            "repository": row["repository"] if "repository" in keys else "",
        }
        for attr, (column, factory) in _JSON_COLUMNS.items():
            raw = row[column] if column in keys else None
            values[attr] = _load_json(raw, factory)
        return cls(**values)


def _load_json(raw: Any, factory: Callable[[], Any]) -> Any:
    if raw is None:
        return factory()
    if not isinstance(raw, str):
        raise TypeError("sqlite json types must be strings")
    data = json.loads(raw)
    if data is None:
        return factory()
    return data


def json_array_contains(value: Any, item: Any) -> bool:
    """Report whether the JSON array text ``value`` contains the string ``item``."""
    if not isinstance(value, str) or not isinstance(item, str):
        raise TypeError("both arguments to json_array_contains must be strings")
    array = json.loads(value)
    if array is None:
        return False
    if not isinstance(array, list) or not all(isinstance(x, str) for x in array):
        raise ValueError("json_array_contains expects a JSON array of strings")
    return item in array


def _sql_json_array_contains(value: Any, item: Any) -> int:
    return int(json_array_contains(value, item))


class Database:
    """A connection to the package database, initialised on open."""

    def __init__(self, path: str) -> None:
        self._conn = sqlite3.connect(path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.create_function(
            "json_array_contains", 2, _sql_json_array_contains, deterministic=True
        )
        try:
            self._init()
        except BaseException:
            self._conn.close()
            raise

    def _init(self) -> None:
        while True:
            self._conn.executescript(_SCHEMA)
            version = self.get_version()
            if version is None:
                self.execute("INSERT INTO lure_db_version(version) VALUES (?);", CURRENT_VERSION)
                return
            if version == CURRENT_VERSION:
                return
            self._reset()

    def _reset(self) -> None:
        self.execute("DROP TABLE IF EXISTS pkgs;")
        self.execute("DROP TABLE IF EXISTS lure_db_version;")

    def close(self) -> None:
        """Close the connection."""
        self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def execute(self, sql: str, *args: Any) -> sqlite3.Cursor:
        """Run a statement and return its cursor."""
        return self._conn.execute(sql, args)

    def is_empty(self) -> bool:
        """Report whether the database holds no packages."""
        try:
            row = self.execute("SELECT count(1) FROM pkgs;").fetchone()
        except sqlite3.Error:
            return True
        return row[0] == 0

    def get_version(self) -> int | None:
        """Return the stored schema version, or None if there is none."""
        try:
            row = self.execute("SELECT * FROM lure_db_version LIMIT 1;").fetchone()
        except sqlite3.Error:
            return None
        if row is None:
            return None
        return row["version"]

    def insert_package(self, pkg: Package) -> None:
        """Insert a package, replacing one with the same name and repository."""
        self._conn.execute(_INSERT, pkg._to_params())

    def get_pkgs(self, where: str, *args: Any) -> Iterator[Package]:
        """Return an iterator over the packages matching ``where``."""
        cursor = self.execute("SELECT * FROM pkgs WHERE " + where, *args)
        return (Package._from_row(row) for row in cursor)

    def get_pkg(self, where: str, *args: Any) -> Package | None:
        """Return the first package matching ``where``, or None."""
        row = self.execute("SELECT * FROM pkgs WHERE " + where + " LIMIT 1", *args).fetchone()
        if row is None:
            return None
        return Package._from_row(row)

    def delete_pkgs(self, where: str, *args: Any) -> None:
        """Delete every package matching ``where``."""
        self.execute("DELETE FROM pkgs WHERE " + where, *args)


def open_default() -> Database:
    """Open the database at the configured location."""
    return Database(get_paths().db_path)