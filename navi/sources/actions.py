"""Route session actions to the local tmux store or the session's host."""

from __future__ import annotations

from typing import Optional

from navi.core.errors import ActionError
from navi.sources.local import LocalSessionStore
from navi.sources.remote import RemoteHosts


class SessionActionRouter:
    """SessionActions keyed by origin: None is local, anything else a remote name."""

    def __init__(self, local: LocalSessionStore, remote: Optional[RemoteHosts] = None) -> None:
        self.local = local
        self.remote = remote

    def _remote(self, action: str, origin: str, name: str) -> RemoteHosts:
        if self.remote is None or origin not in self.remote.hosts:
            raise ActionError(action, f"{origin}:{name}", "unknown remote")
        return self.remote

    async def attach(self, origin: Optional[str], name: str) -> None:
        if origin is None:
            await self.local.attach(name)
        else:
            await self._remote("attach", origin, name).attach(origin, name)

    async def kill(self, origin: Optional[str], name: str) -> None:
        if origin is None:
            await self.local.kill(name)
        else:
            await self._remote("kill", origin, name).kill(origin, name)

    async def rename(self, origin: Optional[str], name: str, new_name: str) -> None:
        if origin is None:
            await self.local.rename(name, new_name)
        else:
            await self._remote("rename", origin, name).rename(origin, name, new_name)

    async def dismiss(self, origin: Optional[str], name: str) -> None:
        if origin is None:
            await self.local.dismiss(name)
        else:
            await self._remote("dismiss", origin, name).dismiss(origin, name)

    async def create(self, name: str, cwd: str) -> None:
        await self.local.create(name, cwd)
