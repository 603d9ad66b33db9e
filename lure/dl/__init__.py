"""Downloaders for files, archives, git repositories and torrents, with a download cache."""