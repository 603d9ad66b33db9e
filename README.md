# lure

The core library behind a Linux user repository. It keeps the user's
configuration and cache directories, stores package metadata in a SQLite
database, works out which distro-, architecture- and language-specific
overrides apply to a package, downloads package sources over HTTP, from a
local directory, with git or over BitTorrent through a download cache, and
offers terminal prompts and a pager for reviewing build scripts.

## Modules

| Module | Purpose |
| --- | --- |
| `lure.config` | `Config`, `Repo`, `Paths`; `get_config()`, `get_paths()`, `language()`, `system_lang()`, `reset_cache()` |
| `lure.cpu` | `arch()`, `compatible_arches()`, `is_compatible_with()` |
| `lure.db` | `Package`, `Database`, `open_default()`, `json_array_contains()` |
| `lure.overrides` | `Opts`, `resolve()`, `ResolvedPackage`, `resolve_package()` |
| `lure.dlcache` | `base_path()`, `create()`, `get()` |
| `lure.osutils` | `move()` |
| `lure.dl.common` | `Options`, `Manifest`, `DownloadType`, `Downloader`, `UpdatingDownloader`, manifest reading and writing, errors |
| `lure.dl.file` | `FileDownloader`, `extract_archive()`, `get_filename()` |
| `lure.dl.git` | `GitDownloader` |
| `lure.dl.torrent` | `TorrentDownloader`, `remove_torrent_files()`, `determine_type()` |
| `lure.dl.download` | `download()`, `normalize_url()`, `get_downloader()`, `handle_cache()`, `link_dir()` |
| `lure.pager` | `syntax_highlight_bash()`, `Pager` |
| `lure.prompts` | `yes_no_prompt()`, `prompt_view_script()`, `show_script()`, `pkg_prompt()`, `flatten_pkgs()`, `choose_opt_depends()`, `UserAbortError` |

## Configuration and paths

`get_paths()` creates `lure/` under the user config directory (honouring
`$XDG_CONFIG_HOME`) with a default `lure.toml`, and `lure/repo` and
`lure/pkgs` under the user cache directory (honouring `$XDG_CACHE_HOME`).
The database lives at `lure/db` in the cache directory.

`get_config()` loads `lure.toml` once. If the file cannot be read or decoded,
it returns the defaults (`rootCmd = "sudo"`, `pagerStyle = "native"`, one
repository named `default`) and tries the file again next time. `language()`
returns the base language of `$LANG` (`"en"` when unset or `C`).
`reset_cache()` forgets all cached values.

## Architectures

```python
from lure import cpu

cpu.arch()                                  # e.g. "amd64"; honours $LURE_ARCH and $LURE_ARM_VARIANT
cpu.compatible_arches("arm7")               # ["arm7", "arm6", "arm5"]
cpu.is_compatible_with("arm7", ["arm6"])    # True
cpu.is_compatible_with("amd64", ["all"])    # True
```

## The package database

```python
from lure.db import Database, Package

with Database(":memory:") as db:
    db.insert_package(Package(name="hello", version="1.0", release=1,
                              provides=["hello"], repository="default"))
    db.get_pkg("name = ?", "hello")
    list(db.get_pkgs("json_array_contains(provides, ?)", "hello"))
    db.delete_pkgs("name = ?", "hello")
    db.is_empty()      # True
```

`Database` creates its tables on open and resets them when the stored schema
version differs from the current one. `get_pkg` returns `None` when nothing
matches. `open_default()` opens the database at `get_paths().db_path`.

## Overrides

`resolve(info, opts)` takes any object with an `id` and a `like` sequence of
distro names and returns the override names to try, most specific first,
combining languages, distros and compatible architectures. `Opts` has
`with_name`, `with_overrides`, `with_like_distros`, `with_languages` and
`with_language_tags`. `resolve_package(pkg, names)` picks, for each
per-override field of a `Package`, the value of the first name present.

## Download cache and moving files

```python
from lure import dlcache, osutils

path = dlcache.create("https://example.com/source.tar.gz")
dlcache.get("https://example.com/source.tar.gz")   # the same path, or None if absent

osutils.move("build/output.pkg", "output.pkg")     # copies and deletes if rename fails
```

## Downloading sources

`lure.dl.download.download(opts)` normalises the URL, picks a downloader with
`get_downloader` (git for `git+` URLs, torrent for magnet and `torrent+http(s)`
links, the file downloader otherwise), updates a cached copy where the
downloader supports it, and hard-links the result into `opts.destination`.
With `cache_disabled` the source is fetched straight into the destination.

The file downloader reads `http(s)` URLs and, with the `local` scheme, files
under `opts.local_dir`. Zip and tar archives are extracted and `.gz`, `.bz2`,
`.xz` and `.lzma` files are decompressed. A checksum mismatch raises
`ChecksumMismatchError`; an unknown hash algorithm raises
`NoSuchHashAlgorithmError`. Git sources need the `git` program; torrents
need `aria2c`, and `Aria2NotFoundError` is raised without it.

Query parameters starting with `~` control downloaders: `~name` sets the file
or directory name, `~archive=false` keeps an archive packed, and git URLs take
`~rev`, `~depth` and `~recursive=true`.

## Reviewing scripts

`syntax_highlight_bash(stream, style)` returns terminal-coloured Bash using a
Pygments style (falling back to `default`). `Pager(name, content).run()` shows
it full screen; `q`, Esc or Ctrl-C quits. `prompt_view_script` offers to show
a script and raises `UserAbortError` if the user then declines to continue.

## What this package does not do

It has no command-line program. It does not pull repositories, read
`os-release` to detect the distribution, run build scripts, build packages or
drive a system package manager; callers supply those parts.