"""Change-versus-duplicate classification for watch events."""

from __future__ import annotations


class VersionTracker:
    """Remembers the last resource version seen for each object UID.

    Versions are opaque: only equality is meaningful. Entries are never
    evicted, which keeps memory bounded by the number of objects the watch
    ever reported.
    """

    def __init__(self) -> None:
        # uid -> last observed resourceVersion
        self._versions: dict[str, str] = {}

    def observe(self, uid: str, version: str) -> bool:
        """Record *version* for *uid*.

        Returns:
            True  -- the object is new or its version changed.
            False -- same version as last time; suppress the notification.
        """
        if self._versions.get(uid) == version:
            return False
        self._versions[uid] = version
        return True

    def version_of(self, uid: str) -> str | None:
        return self._versions.get(uid)

    def __contains__(self, uid: object) -> bool:
        return uid in self._versions

    def __len__(self) -> int:
        return len(self._versions)
